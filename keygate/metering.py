"""
Usage metering for handlers behind ``require_api_key``.

    with metered_call(background_tasks, recorder, identity, "chat.complete") as call:
        reply = do_work()
        call.tokens_in, call.tokens_out = reply.usage

A successful call is recorded as a background task once the response is sent.
A call that raises is recorded inline before the error propagates, since the
error response carries no background tasks.
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from fastapi import BackgroundTasks, HTTPException

from keygate.errors import KeygateError
from keygate.services.authenticator import AuthResult
from keygate.services.usage_recorder import UsageRecorder


@dataclass
class MeteredCall:
    endpoint: str
    tokens_in: int = 0
    tokens_out: int = 0
    status_code: int = 200


@contextmanager
def metered_call(
    background_tasks: BackgroundTasks,
    recorder: UsageRecorder,
    identity: AuthResult,
    endpoint: str,
) -> Iterator[MeteredCall]:
    call = MeteredCall(endpoint=endpoint)
    started = time.monotonic()

    def _kwargs() -> dict:
        return {
            "tokens_in": call.tokens_in,
            "tokens_out": call.tokens_out,
            "latency_ms": int((time.monotonic() - started) * 1000),
            "status_code": call.status_code,
        }

    try:
        yield call
    except (KeygateError, HTTPException) as exc:
        call.status_code = exc.status_code
        recorder.record(identity.key_id, endpoint, **_kwargs())
        raise
    except Exception:
        call.status_code = 500
        recorder.record(identity.key_id, endpoint, **_kwargs())
        raise
    else:
        background_tasks.add_task(recorder.record, identity.key_id, endpoint, **_kwargs())

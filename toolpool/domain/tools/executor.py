"""
Tool Executor - Invokes resolved tools and reports their outcome

Handles the actual invocation of a tool body with:
- Exception capture (a body that raises is a failed invocation)
- Result envelope coercion (outcome comes from the declared ``success``)
- Optional timeout enforcement (an abandoned invocation records nothing)
- Optional per-tool execution limits
- Outcome accounting after every completed invocation
"""

import concurrent.futures
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from toolpool.domain.tools.accountant import InvocationAccountant
from toolpool.domain.tools.errors import ToolInvocationTimeout
from toolpool.domain.tools.loader import ToolBody
from toolpool.domain.tools.manifest import ResultEnvelope, ToolManifest
from toolpool.infra.logging import tool_context
from toolpool.infra.metrics import MetricsService, get_metrics

logger = logging.getLogger(__name__)


class ExecutionLimiter:
    """
    Caps how often each tool may run within a rolling window

    The window for a tool starts at its first execution and resets once it
    has elapsed.

    Usage:
        limiter = ExecutionLimiter(limit=10, window_seconds=3600)
        if limiter.try_acquire("calc_discount_171_aa"):
            ...
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._counts: Dict[str, Tuple[int, float]] = {}  # tool_name -> (count, window start)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings=None) -> Optional["ExecutionLimiter"]:
        """Limiter configured from settings, or None when limits are disabled"""
        if settings is None:
            from toolpool.config import settings
        if settings.tool_execution_limit_per_hour is None:
            return None
        return cls(
            limit=settings.tool_execution_limit_per_hour,
            window_seconds=settings.tool_execution_reset_hours * 3600,
        )

    def try_acquire(self, tool_name: str) -> bool:
        now = self._clock()
        with self._lock:
            count, started = self._counts.get(tool_name, (0, now))
            if now - started >= self.window_seconds:
                count, started = 0, now
            if count >= self.limit:
                self._counts[tool_name] = (count, started)
                return False
            self._counts[tool_name] = (count + 1, started)
            return True

    def seconds_until_reset(self, tool_name: str) -> float:
        with self._lock:
            entry = self._counts.get(tool_name)
        if entry is None:
            return 0.0
        return max(0.0, entry[1] + self.window_seconds - self._clock())


class ToolHandle:
    """
    A resolved tool, bound to one concrete tool name

    ``invoke`` always returns a ResultEnvelope and records its outcome,
    except when the invocation never completes: a timeout raises
    ToolInvocationTimeout and an execution-limit rejection returns a failure
    envelope with ``limit_reached=True``. Neither is recorded.

    Usage:
        handle = resolver.resolve(agent_id, "convert_temp")
        envelope = handle.invoke({"celsius": 21.5})
    """

    def __init__(
        self,
        manifest: ToolManifest,
        body: ToolBody,
        accountant: InvocationAccountant,
        timeout_seconds: Optional[float] = None,
        limiter: Optional[ExecutionLimiter] = None,
        metrics: Optional[MetricsService] = None,
    ):
        self.manifest = manifest
        self.body = body
        self.accountant = accountant
        self.timeout_seconds = timeout_seconds
        self.limiter = limiter
        self.metrics = metrics or get_metrics()

    @property
    def tool_name(self) -> str:
        return self.manifest.tool_name

    @property
    def tool_type(self) -> str:
        return self.manifest.tool_type

    def invoke(self, params: Optional[Mapping[str, Any]] = None) -> ResultEnvelope:
        """
        Invoke the tool and record the declared outcome

        Args:
            params: Tool parameters

        Returns:
            ResultEnvelope: Envelope returned by the tool, or a failure
                envelope if the body raised or returned something else

        Raises:
            ToolInvocationTimeout: If the body did not finish in time
            NotFound: If the manifest vanished from the store
        """
        params = dict(params or {})

        with tool_context(self.tool_name):
            if self.limiter is not None and not self.limiter.try_acquire(self.tool_name):
                return self._limit_reached()

            start_time = time.time()
            with self.metrics.track_tool_invocation(self.tool_type):
                envelope = self._run(params)
            execution_time_ms = (time.time() - start_time) * 1000

            if envelope.execution_time_ms is None:
                envelope = envelope.model_copy(update={"execution_time_ms": execution_time_ms})
            if envelope.tool_name is None:
                envelope = envelope.model_copy(update={"tool_name": self.tool_name})

            self.manifest = self.accountant.record_outcome(self.tool_name, envelope.success)

            if envelope.success:
                logger.info(
                    f"Tool executed successfully in {execution_time_ms:.1f}ms",
                    extra={"execution_time_ms": execution_time_ms},
                )
            else:
                logger.warning(
                    f"Tool execution failed: {envelope.error}",
                    extra={"execution_time_ms": execution_time_ms},
                )

            return envelope

    def _run(self, params: Dict[str, Any]) -> ResultEnvelope:
        try:
            if self.timeout_seconds is None:
                raw = self.body(params)
            else:
                raw = self._run_with_timeout(params)
        except ToolInvocationTimeout:
            raise
        except Exception as e:
            logger.error(
                f"Tool body raised {type(e).__name__}: {e}",
                extra={"error_type": type(e).__name__},
                exc_info=True,
            )
            return ResultEnvelope.failure(str(e) or type(e).__name__)

        return ResultEnvelope.from_raw(raw)

    def _run_with_timeout(self, params: Dict[str, Any]) -> Any:
        """
        Run the body in a worker thread and stop waiting after the timeout

        The worker is not joined on timeout; the body may still finish in
        the background but its result is discarded.
        """
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.body, params)
            try:
                return future.result(timeout=self.timeout_seconds)
            except concurrent.futures.TimeoutError:
                future.cancel()
                self.metrics.tool_timeouts.labels(tool_type=self.tool_type).inc()
                logger.warning(f"Tool execution abandoned after {self.timeout_seconds} seconds")
                raise ToolInvocationTimeout(self.tool_name, self.timeout_seconds)
        finally:
            executor.shutdown(wait=False)

    def _limit_reached(self) -> ResultEnvelope:
        self.metrics.tool_limit_rejections.labels(tool_type=self.tool_type).inc()
        reset_in = self.limiter.seconds_until_reset(self.tool_name)
        logger.warning(
            f"Tool reached execution limit ({self.limiter.limit}), resets in {reset_in:.0f}s"
        )
        return ResultEnvelope.failure(
            f"Tool execution limit reached ({self.limiter.limit} per "
            f"{self.limiter.window_seconds:.0f}s). Try again later.",
            tool_name=self.tool_name,
            limit_reached=True,
        )

    def __repr__(self) -> str:
        status = "shared" if self.manifest.shared else "private"
        return f"<ToolHandle {self.tool_name} ({status})>"

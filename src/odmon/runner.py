from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Iterator

from .config import AppConfig
from .errors import ConfigurationError, FetchError, PollError
from .flatten import DEFAULT_LINE_FORMAT, DEFAULT_RECORD_SEPARATOR, flatten_record, format_value, select_path
from .http_utils import HttpClient
from .models import FetchRequest, PollSpec, Record, split_address
from .resolver import resolve_parameters
from .sinks.base import EventSink
from .sinks.hec import HecEventSink
from .sinks.xml_stream import XmlEventStreamSink
from .sources.base import ResourceFetcher
from .sources.odata import ODataFetcher
from .state.file_store import FileCheckpointStore
from .state.store import CheckpointStore


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class CycleState(str, enum.Enum):
    INIT = "init"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    EMITTING = "emitting"
    CHECKPOINTING = "checkpointing"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class CycleReport:
    stanza: str
    state: CycleState
    cursor_before: str | None
    cursor_after: str | None
    records_fetched: int
    events_emitted: int
    emit_failures: int
    error: str | None
    duration_ms: int


@dataclass(slots=True)
class RunOnceReport:
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    cycles: tuple[CycleReport, ...]
    records_fetched: int
    events_emitted: int
    emit_failures: int
    cycle_errors: int


@dataclass(slots=True)
class PollCycle:
    """
    单个 stanza 的一次轮询周期：

    Init -> Resolving -> Fetching -> Emitting -> Checkpointing -> Done，任意阶段失败进入 Failed。

    - tail filter 未开启时不读写 cursor
    - cursor 候选值取“最后一条”记录上的 tail filter 字段，不取最大值
    - 失败时已发出的事件不撤回，也不写 checkpoint
    """

    spec: PollSpec
    fetcher: ResourceFetcher
    checkpoints: CheckpointStore
    sinks: tuple[EventSink, ...]
    line_format: str = DEFAULT_LINE_FORMAT
    record_separator: str = DEFAULT_RECORD_SEPARATOR
    state: CycleState = CycleState.INIT
    cursor_before: str | None = None
    cursor_after: str | None = None
    records_fetched: int = 0
    events_emitted: int = 0
    emit_failures: int = 0
    error: str | None = None
    _started: float = field(default=0.0, repr=False)

    def _enter(self, state: CycleState) -> None:
        logger.debug("cycle state: stanza=%s %s -> %s", self.spec.stanza, self.state.value, state.value)
        self.state = state

    def run(self) -> CycleReport:
        self._started = time.monotonic()
        try:
            self._run()
        except Exception as e:
            if isinstance(e, PollError):
                e.stanza = e.stanza or self.spec.stanza
                e.state = e.state or self.state.value
            self.error = f"{type(e).__name__}: {e} (in {self.state.value})"
            self._enter(CycleState.FAILED)
            raise
        return self.report()

    def _run(self) -> None:
        spec = self.spec
        spec.validate()

        self._enter(CycleState.RESOLVING)
        cursor: str | None = None
        if spec.tail_filter_enabled:
            cursor = self.checkpoints.load(spec.stanza)
            self.cursor_before = cursor
            self.cursor_after = cursor
        address, filter_ = resolve_parameters(spec, cursor)
        request = self._build_request(address, filter_)

        self._enter(CycleState.FETCHING)
        logger.info(
            "poll start: stanza=%s address=%s resource=%s filter=%r cursor=%r",
            spec.stanza,
            request.address,
            request.resource,
            request.filter,
            cursor,
        )
        records = self._open(request)

        self._enter(CycleState.EMITTING)
        for record in records:
            self.records_fetched += 1
            data = flatten_record(
                record,
                record_separator=self.record_separator,
                line_format=self.line_format,
                include_empty=spec.include_empty,
                keys=spec.select or None,
            )
            if data:
                self._emit(data)
            if spec.tail_filter_enabled:
                self.cursor_after = format_value(select_path(record, spec.tail_filter_path))

        if spec.tail_filter_enabled:
            self._enter(CycleState.CHECKPOINTING)
            self.checkpoints.save(spec.stanza, self.cursor_after or "")

        self._enter(CycleState.DONE)

    def _build_request(self, address: str, filter_: str) -> FetchRequest:
        if self.spec.resource:
            return FetchRequest(address=address, resource=self.spec.resource, filter=filter_)
        root, resource = split_address(address)
        return FetchRequest(address=root, resource=resource, filter=filter_)

    def _open(self, request: FetchRequest) -> Iterator[Record]:
        try:
            iterator = iter(self.fetcher.fetch(request))
        except PollError:
            raise
        except Exception as e:
            raise FetchError(f"fetch failed: {type(e).__name__}: {e}") from e
        return self._pull(iterator)

    def _pull(self, iterator: Iterator[Record]) -> Iterator[Record]:
        # 逐条拉取；迭代中途抛出的异常统一归为 FetchError
        while True:
            try:
                record = next(iterator)
            except StopIteration:
                return
            except PollError:
                raise
            except Exception as e:
                raise FetchError(
                    f"fetch failed after {self.records_fetched} records: {type(e).__name__}: {e}"
                ) from e
            yield record

    def _emit(self, data: str) -> None:
        for sink in self.sinks:
            try:
                sink.write(data, self.spec.stanza)
                self.events_emitted += 1
            except Exception:  # noqa: BLE001
                self.emit_failures += 1
                logger.exception(
                    "emit failed: channel=%s sink_type=%s stanza=%s",
                    sink.channel(),
                    type(sink).__name__,
                    self.spec.stanza,
                )

    def report(self) -> CycleReport:
        return CycleReport(
            stanza=self.spec.stanza,
            state=self.state,
            cursor_before=self.cursor_before,
            cursor_after=self.cursor_after,
            records_fetched=self.records_fetched,
            events_emitted=self.events_emitted,
            emit_failures=self.emit_failures,
            error=self.error,
            duration_ms=int((time.monotonic() - self._started) * 1000) if self._started else 0,
        )


@dataclass(frozen=True, slots=True)
class PollInput:
    spec: PollSpec
    fetcher: ResourceFetcher


@dataclass(slots=True)
class Runner:
    """
    核心执行器：一次轮询周期内依次处理所有 stanza：
    Checkpoint -> Resolve -> Fetch -> Flatten -> Sink -> Checkpoint

    单个 stanza 失败只记录到报告并打日志，不影响其它 stanza。
    """

    checkpoints: CheckpointStore
    inputs: tuple[PollInput, ...]
    sinks: tuple[EventSink, ...]
    line_format: str = DEFAULT_LINE_FORMAT
    record_separator: str = DEFAULT_RECORD_SEPARATOR

    def run_once(self) -> RunOnceReport:
        started_at = _utc_now()
        start_t = time.monotonic()

        reports: list[CycleReport] = []
        cycle_errors = 0
        for poll_input in self.inputs:
            cycle = PollCycle(
                spec=poll_input.spec,
                fetcher=poll_input.fetcher,
                checkpoints=self.checkpoints,
                sinks=self.sinks,
                line_format=self.line_format,
                record_separator=self.record_separator,
            )
            try:
                report = cycle.run()
            except Exception:  # noqa: BLE001
                cycle_errors += 1
                logger.exception(
                    "cycle failed: stanza=%s error=%s records_fetched=%d cursor=%r",
                    poll_input.spec.stanza,
                    cycle.error,
                    cycle.records_fetched,
                    cycle.cursor_before,
                )
                report = cycle.report()
            else:
                logger.info(
                    "poll done: stanza=%s records=%d emitted=%d emit_failures=%d cursor=%r -> %r duration_ms=%d",
                    report.stanza,
                    report.records_fetched,
                    report.events_emitted,
                    report.emit_failures,
                    report.cursor_before,
                    report.cursor_after,
                    report.duration_ms,
                )
            reports.append(report)

        finished_at = _utc_now()
        return RunOnceReport(
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=int((time.monotonic() - start_t) * 1000),
            cycles=tuple(reports),
            records_fetched=sum(r.records_fetched for r in reports),
            events_emitted=sum(r.events_emitted for r in reports),
            emit_failures=sum(r.emit_failures for r in reports),
            cycle_errors=cycle_errors,
        )

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if callable(close):
                close()


def build_runner(config: AppConfig) -> Runner:
    """
    根据配置构建可运行的 Runner。

    - 统一在这里做“配置 -> 实例”的装配，Runner 内只关注流程编排
    - 对 secret/token 只通过环境变量读取，避免落盘
    """
    http = HttpClient()
    checkpoints = FileCheckpointStore(config.checkpoint_dir)

    inputs: list[PollInput] = []
    for stanza in config.stanzas:
        fetcher = ODataFetcher(
            http=http,
            token=config.resolve_env(stanza.token_env),
            username=config.resolve_env(stanza.username_env),
            password=config.resolve_env(stanza.password_env),
        )
        inputs.append(PollInput(spec=stanza.spec, fetcher=fetcher))

    sinks: list[EventSink] = []
    if config.xml_stream:
        sinks.append(XmlEventStreamSink())

    if config.hec:
        url = config.resolve_env(config.hec.url_env)
        token = config.resolve_env(config.hec.token_env)
        if not url or not token:
            raise ConfigurationError(
                f"hec sink configured but {config.hec.url_env} or {config.hec.token_env} is not set in the environment"
            )
        sinks.append(
            HecEventSink(
                url=url,
                token=token,
                http=http,
                sourcetype=config.hec.sourcetype,
                index=config.hec.index,
                host=config.hec.host,
            )
        )

    return Runner(
        checkpoints=checkpoints,
        inputs=tuple(inputs),
        sinks=tuple(sinks),
        line_format=config.output.line_format,
        record_separator=config.output.record_separator,
    )

"""HTTP server: health, topics, offsets, consumer-lag statistics and request counters."""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import time
from contextlib import asynccontextmanager
from typing import List, Optional, Sequence

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from brokermetrics.config import MetricsConfig
from brokermetrics.observability import get_logger
from brokermetrics.offsets import OffsetRangeAggregator
from brokermetrics.protocol import (
    HealthResponse,
    StatisticsMessagesRequest,
    TopicCreatedResponse,
    counters_response,
    error_response,
    offset_committed_response,
    parse_time,
    topics_list_response,
    ERROR_BAD_REQUEST,
    ERROR_TOPIC_EXISTS,
    ERROR_TOPIC_NOT_FOUND,
)
from brokermetrics.registry import StatisticsRegistry
from brokermetrics.reporter import ScheduledStatReporter, StatisticsItemPrinter
from brokermetrics.scheduler import PeriodicScheduler
from brokermetrics.statistics import StatisticsBriefInterceptor, StatisticsItem
from brokermetrics.store import (
    InMemoryConsumerOffsetStore,
    InMemoryMessageStore,
    InMemoryTopicConfigManager,
)
from brokermetrics.ticks import Ticks

# Statistics item kind fed by the request middleware, one item per "<METHOD> <route template>".
HTTP_REQUESTS = "HTTP_REQUESTS"
HTTP_REQUEST_ITEMS = ("requests", "errors", "latency_us")
DEFAULT_SAMPLE_ITEMS = ["requests", "errors"]
UNMATCHED_ROUTE = "UNMATCHED"

logger = get_logger("brokermetrics.server")


def _http_item(stat_kind: str, stat_object: str, item_names: Sequence[str]) -> StatisticsItem:
    item = StatisticsItem(stat_kind, stat_object, item_names)
    item.set_interceptor(StatisticsBriefInterceptor(item, ["latency_us"]))
    return item


class RequestStatsMiddleware(BaseHTTPMiddleware):
    """Feed each request's latency into the ticks registry and the HTTP_REQUESTS statistics item."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter_ns()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed_us = (time.perf_counter_ns() - start) // 1000
            route = request.scope.get("route")
            # keyed by route template so arbitrary paths cannot grow the registries
            key = f"{request.method} {getattr(route, 'path', UNMATCHED_ROUTE)}"
            state = request.app.state
            state.ticks.flow(key, elapsed_us)
            state.registry.inc(HTTP_REQUESTS, key, 1, 1 if status >= 500 else 0, elapsed_us)


# ---- Request bodies ----

class TopicCreateBody(BaseModel):
    name: str
    read_queue_nums: int = 4


class MessagesAppendBody(BaseModel):
    queue_id: int = 0
    count: int = 1
    store_time: Optional[int] = None
    delayed: bool = False


class OffsetCommitBody(BaseModel):
    consumer_group: str
    topic: str
    queue_id: int
    offset: int


def create_app(config: Optional[MetricsConfig] = None) -> FastAPI:
    """Build the app with its own scheduler, registries and in-memory broker state."""
    config = config or MetricsConfig.from_env()
    if not config.sample_item_names:
        config.sample_item_names = list(DEFAULT_SAMPLE_ITEMS)

    scheduler = PeriodicScheduler(workers=config.scheduler_workers)
    ticks = Ticks(config)
    reporter = ScheduledStatReporter.from_config("HTTP", StatisticsItemPrinter(), scheduler, config)
    registry = StatisticsRegistry({HTTP_REQUESTS: HTTP_REQUEST_ITEMS}, reporter, item_factory=_http_item)
    message_store = InMemoryMessageStore()
    consumer_offsets = InMemoryConsumerOffsetStore()
    topic_configs = InMemoryTopicConfigManager()
    aggregator = OffsetRangeAggregator(message_store, consumer_offsets, topic_configs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.start_time = time.time()
        scheduler.start()
        ticks.start(scheduler)
        yield
        ticks.stop()
        await asyncio.to_thread(scheduler.shutdown, True)

    app = FastAPI(title="Broker Metrics API", lifespan=lifespan)
    app.state.config = config
    app.state.start_time = time.time()
    app.state.scheduler = scheduler
    app.state.ticks = ticks
    app.state.reporter = reporter
    app.state.registry = registry
    app.state.message_store = message_store
    app.state.consumer_offsets = consumer_offsets
    app.state.topic_configs = topic_configs
    app.state.aggregator = aggregator
    app.add_middleware(RequestStatsMiddleware)

    router = APIRouter(prefix="/api/v1")

    # ---- Health ----

    @router.get("/health")
    def health() -> JSONResponse:
        """GET /health → { uptime_sec, topics, tracked_items, counters }."""
        body = HealthResponse(
            uptime_sec=time.time() - app.state.start_time,
            topics=topic_configs.topic_count(),
            tracked_items=registry.item_count(),
            counters=len(ticks),
        ).to_dict()
        return JSONResponse(content=body, status_code=200)

    # ---- Topics ----

    @router.post("/topics")
    def create_topic(body: TopicCreateBody) -> JSONResponse:
        """POST /topics { name, read_queue_nums } → 201, 400 or 409 Conflict."""
        name = (body.name or "").strip()
        if not name or body.read_queue_nums <= 0:
            return JSONResponse(
                content=error_response(ERROR_BAD_REQUEST, "name and a positive read_queue_nums are required"),
                status_code=400,
            )
        topic_config, created = topic_configs.create_topic(name, body.read_queue_nums)
        if not created:
            return JSONResponse(
                content=error_response(ERROR_TOPIC_EXISTS, f"Topic {name!r} already exists", topic=name),
                status_code=409,
            )
        return JSONResponse(
            content=TopicCreatedResponse(topic=name, read_queue_nums=topic_config.read_queue_nums).to_dict(),
            status_code=201,
        )

    @router.get("/topics")
    def list_topics() -> JSONResponse:
        """GET /topics → { topics: [ { name, read_queue_nums, write_queue_nums } ] }."""
        body = topics_list_response([c.to_dict() for c in topic_configs.list_topics()])
        return JSONResponse(content=body, status_code=200)

    @router.post("/topics/{name}/messages")
    def append_messages(name: str, body: MessagesAppendBody) -> JSONResponse:
        """Record stored (or delayed) messages for a topic queue."""
        topic_config = topic_configs.select_topic_config(name)
        if topic_config is None:
            return JSONResponse(
                content=error_response(ERROR_TOPIC_NOT_FOUND, f"Topic {name!r} not found"),
                status_code=404,
            )
        if body.count <= 0 or not 0 <= body.queue_id < topic_config.read_queue_nums:
            return JSONResponse(
                content=error_response(ERROR_BAD_REQUEST, "count must be positive and queue_id in range"),
                status_code=400,
            )
        if body.delayed:
            message_store.add_timing_messages(name, body.count)
            return JSONResponse(content={"status": "delayed", "topic": name, "count": body.count}, status_code=200)
        store_time = body.store_time if body.store_time is not None else int(time.time() * 1000)
        offsets: List[int] = [message_store.append(name, body.queue_id, store_time) for _ in range(body.count)]
        return JSONResponse(
            content={"status": "stored", "topic": name, "queue_id": body.queue_id, "offsets": offsets},
            status_code=200,
        )

    # ---- Offsets ----

    @router.post("/offsets")
    def commit_offset(body: OffsetCommitBody) -> JSONResponse:
        """POST /offsets { consumer_group, topic, queue_id, offset } → 200 or 404."""
        if topic_configs.select_topic_config(body.topic) is None:
            return JSONResponse(
                content=error_response(ERROR_TOPIC_NOT_FOUND, f"Topic {body.topic!r} not found"),
                status_code=404,
            )
        consumer_offsets.commit_offset(body.consumer_group, body.topic, body.queue_id, body.offset)
        return JSONResponse(
            content=offset_committed_response(body.consumer_group, body.topic, body.queue_id, body.offset),
            status_code=200,
        )

    # ---- Stats ----

    @router.get("/stats/messages")
    def statistics_messages(
        topic: str = "",
        consumer_group: str = "",
        from_time: int = 0,
        to_time: int = 0,
    ) -> JSONResponse:
        """GET /stats/messages → { delay_messages, active_messages, total_messages } or 404."""
        if not topic.strip() or not consumer_group.strip():
            return JSONResponse(
                content=error_response(ERROR_BAD_REQUEST, "topic and consumer_group are required"),
                status_code=400,
            )
        request = StatisticsMessagesRequest(
            topic=topic,
            consumer_group=consumer_group,
            from_time=parse_time(from_time),
            to_time=parse_time(to_time),
        )
        ticks.start_tick("statistics_messages")
        try:
            result, err = aggregator.statistics_messages(request)
        finally:
            ticks.end_tick("statistics_messages")
        if err:
            return JSONResponse(
                content=error_response(err, f"consumeStats, topic config not exist, {topic}", topic=topic),
                status_code=404,
            )
        return JSONResponse(content=result.to_dict(), status_code=200)

    @router.get("/stats/counters")
    def stats_counters() -> JSONResponse:
        """GET /stats/counters → { counters: { name: { count, min, max, avg, tp50, tp99, tp999 } } }."""
        return JSONResponse(content=counters_response(ticks.summaries()), status_code=200)

    app.include_router(router)
    return app


app = create_app()

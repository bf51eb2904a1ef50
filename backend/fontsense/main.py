"""Process bootstrap: environment, logging and the default object graph."""

from __future__ import annotations

import logging

from dotenv import load_dotenv

from fontsense.config import Settings, get_settings
from fontsense.ingest import FontIngestService
from fontsense.llm.client import AnthropicInferenceClient, InferenceClient
from fontsense.parser.font_parser import parse_font
from fontsense.pipeline.admission import AdmissionController
from fontsense.pipeline.orchestrator import FontParser, FontPipeline
from fontsense.pipeline.stages import StageRunner
from fontsense.store.base import DocumentStore
from fontsense.store.file import JsonFileDocumentStore
from fontsense.store.ingest import IngestRepository
from fontsense.store.memory import InMemoryDocumentStore

_configured = False


def configure_logging(settings: Settings | None = None) -> None:
    global _configured
    if _configured:
        return
    load_dotenv()
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    _configured = True


def create_store(settings: Settings | None = None) -> DocumentStore:
    """JSON-file store when ``data_dir`` is set, otherwise in-process."""
    settings = settings or get_settings()
    if settings.data_dir:
        return JsonFileDocumentStore(settings.data_dir)
    return InMemoryDocumentStore()


def create_pipeline(
    store: DocumentStore | None = None,
    client: InferenceClient | None = None,
    parser: FontParser = parse_font,
) -> FontPipeline:
    configure_logging()
    store = store or create_store()
    stages = StageRunner(client or AnthropicInferenceClient(), AdmissionController(store))
    return FontPipeline(parser, stages, store)


def create_ingest_service(
    store: DocumentStore | None = None,
    client: InferenceClient | None = None,
) -> FontIngestService:
    store = store or create_store()
    pipeline = create_pipeline(store, client)
    return FontIngestService(pipeline, IngestRepository(store))

"""Test fixtures and utilities."""

from typing import Callable, Iterator

import httpx
import pytest

from fixtures import BASE_URL, SAMPLE_PDF_TEXT, SAMPLE_ROWS
from statement_ingest.config import Config, LLMConfig
from statement_ingest.llm_client import ChatCompletionClient
from statement_ingest.schemas import ExistingTransaction


@pytest.fixture
def llm_config() -> LLMConfig:
    """LLM config pointing at the test endpoint."""
    return LLMConfig(api_key="test-key-123", model="sonar", base_url=BASE_URL)


@pytest.fixture
def config(llm_config: LLMConfig) -> Config:
    """Application config with credentials."""
    return Config(llm=llm_config)


@pytest.fixture
def config_without_key() -> Config:
    """Application config missing the API key."""
    return Config(llm=LLMConfig(api_key=None, base_url=BASE_URL))


@pytest.fixture
def make_client(
    llm_config: LLMConfig,
) -> Iterator[Callable[[httpx.BaseTransport], ChatCompletionClient]]:
    """Factory for clients bound to a mock transport."""
    clients: list[ChatCompletionClient] = []

    def factory(transport: httpx.BaseTransport) -> ChatCompletionClient:
        client = ChatCompletionClient(llm_config, transport=transport)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def sample_rows() -> list[str]:
    """Two-row spreadsheet: a purchase and a refund."""
    return list(SAMPLE_ROWS)


@pytest.fixture
def sample_pdf_text() -> str:
    """PDF-extracted statement text."""
    return SAMPLE_PDF_TEXT


@pytest.fixture
def stored_transactions() -> list[ExistingTransaction]:
    """Stored transactions; "a" and "b" are the same coffee purchase."""
    return [
        ExistingTransaction(
            id="a",
            amount=4.5,
            currency="USD",
            occurred_on="2024-01-05",
            category="Food",
            merchant="Starbucks",
        ),
        ExistingTransaction(
            id="b",
            amount=4.5,
            currency="USD",
            occurred_on="2024-01-05",
            category="Food",
            merchant="Starbucks Coffee",
        ),
        ExistingTransaction(
            id="c",
            amount=60.0,
            currency="USD",
            occurred_on="2024-01-09",
            category="Transport",
            merchant="Shell",
        ),
    ]

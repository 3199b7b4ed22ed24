"""Test configuration and fixtures for the RAG chatbot tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- A fake vector store recording the queries it receives
- Chatbot factories wired to fake models (no network)
- Database connection mocks
"""

from typing import Iterable, List, Optional
from unittest.mock import MagicMock, create_autospec, patch

import pytest
from langchain_core.documents import Document
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.vectorstores import VectorStore

from llm_system.chains.prompts import PromptSet
from llm_system.chatbot import ChatBot, ChatBotConfig
from llm_system.core.database import VectorDB
from llm_system.core.response import ResponseMode


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    TEST_API_KEY = "test-key"
    TEST_COLLECTION = "test_collection"
    EMBEDDING_DIMENSION = 8
    RETRIEVER_K = 50

    TV_QUESTION = "What TVs do you have?"
    FENCED_HTML_ANSWER = "```html<p>A</p>```"
    CLEAN_HTML_ANSWER = "<p>A</p>"
    MARKDOWN_CODE_ANSWER = "```js\nconsole.log(1)\n```"


class FakeVectorStore(VectorStore):
    """In-memory vector store. Returns its documents for any query and records each query.

    Args:
        documents: Documents returned by every search.
        error: If given, raised by every search instead.
    """

    def __init__(self, documents: Optional[Iterable[Document]] = None, error: Optional[Exception] = None):
        self.documents: List[Document] = list(documents or [])
        self.error = error
        self.queries: List[str] = []

    def add_texts(self, texts, metadatas=None, **kwargs):
        metadatas = metadatas or [{} for _ in texts]
        ids = []
        for text, metadata in zip(texts, metadatas):
            self.documents.append(Document(page_content=text, metadata=metadata))
            ids.append(str(len(self.documents)))
        return ids

    def similarity_search(self, query, k=4, **kwargs):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.documents[:k]

    @classmethod
    def from_texts(cls, texts, embedding, metadatas=None, **kwargs):
        store = cls()
        store.add_texts(texts, metadatas)
        return store


@pytest.fixture
def sample_documents() -> List[Document]:
    return [
        Document(page_content="Model A is a 55 inch OLED TV.", metadata={"source": "tvs.txt"}),
        Document(page_content="Model B is a 65 inch LED TV.", metadata={"source": "tvs.txt"}),
    ]


@pytest.fixture
def fake_store(sample_documents) -> FakeVectorStore:
    return FakeVectorStore(sample_documents)


@pytest.fixture
def fake_embeddings() -> DeterministicFakeEmbedding:
    return DeterministicFakeEmbedding(size=TestConstants.EMBEDDING_DIMENSION)


@pytest.fixture
def bot_config() -> ChatBotConfig:
    return ChatBotConfig(
        api_key=TestConstants.TEST_API_KEY,
        collection_name=TestConstants.TEST_COLLECTION,
        provider="google",
    )


@pytest.fixture
def chatbot_factory(bot_config, fake_embeddings):
    """Factory building READY chatbots on a given store and scripted model answers.

    The model answers in order: with a non-empty history every message costs two
    answers (rewritten query, then final answer), with an empty history only one.
    """

    def _make(store: VectorStore, responses: List[str], mode: ResponseMode = ResponseMode.HTML) -> ChatBot:
        bot = ChatBot(bot_config, PromptSet.for_mode(mode))

        vector_db = create_autospec(VectorDB, instance=True)
        vector_db.get_retriever.return_value = store.as_retriever(
            search_kwargs={"k": TestConstants.RETRIEVER_K}
        )

        with (
            patch("llm_system.chatbot.get_embeddings", return_value=fake_embeddings),
            patch("llm_system.chatbot.VectorDB", return_value=vector_db),
            patch("llm_system.chatbot.get_llm", return_value=FakeListChatModel(responses=responses)),
        ):
            bot.initialize()
        return bot

    return _make


@pytest.fixture
def mock_pg_connection():
    """Patch `psycopg2.connect` and yield the (connection, cursor) pair every call gets."""

    cursor = MagicMock(name="cursor")
    connection = MagicMock(name="connection")
    connection.__enter__.return_value = connection
    connection.cursor.return_value = cursor

    with patch("pg_db.psycopg2.connect", return_value=connection):
        yield connection, cursor

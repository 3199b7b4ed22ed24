"""
The `ChatBot` orchestrator: one history-aware RAG pipeline with a lifecycle.

    bot = ChatBot(ChatBotConfig(collection_name="tvs"))
    bot.initialize()                                    # blocks until ready
    text = await bot.process_message(query, messages)   # any number of times

States: UNINITIALIZED > INITIALIZING > READY | FAILED. There is no way back;
a failed or finished bot is replaced by a new instance.
"""

import asyncio
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Optional

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel

from llm_system import config
from llm_system.core.llm import get_llm
from llm_system.core.database import VectorDB, get_embeddings
from llm_system.core.history import normalize_chat_history
from llm_system.core.response import ResponseMode, clean_response
from llm_system.chains.prompts import PromptSet
from llm_system.chains.rag import RetrievalChain, build_rag_chain

from logger import get_logger
log = get_logger(name="chatbot")


class ChatBotError(RuntimeError):
    """Base class of the chatbot lifecycle errors."""


class InitializationError(ChatBotError):
    """A sub-object of the pipeline could not be constructed."""


class NotInitializedError(ChatBotError):
    """The pipeline was used before `initialize()` completed."""


class ChatBotState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ChatBotConfig:
    """Connection settings of one chatbot. Every field defaults to `llm_system.config`."""
    api_key: str = field(default_factory=lambda: config.GEMINI_API_KEY)
    embedding_model_name: str = field(default_factory=lambda: config.EMB_MODEL_NAME)
    chat_model_name: str = field(default_factory=lambda: config.LLM_CHAT_MODEL_NAME)
    vector_store_url: str = field(default_factory=lambda: config.QDRANT_URL)
    collection_name: str = field(default_factory=lambda: config.QDRANT_COLLECTION_NAME)
    provider: str = field(default_factory=lambda: config.LLM_PROVIDER)
    temperature: float = config.LLM_CHAT_TEMPERATURE
    retriever_k: int = config.RETRIEVER_K


class ChatBot:
    """History-aware retrieval orchestrator.

    Args:
        bot_config (ChatBotConfig): Models, credentials and vector store location.
        prompts (PromptSet): Condensation and synthesis instructions. The response
            mode of the prompts also decides how answers are cleaned up.
    """

    def __init__(self, bot_config: Optional[ChatBotConfig] = None, prompts: Optional[PromptSet] = None):
        self.config = bot_config or ChatBotConfig()
        self.prompts = prompts or PromptSet.for_mode(ResponseMode(config.RESPONSE_MODE))
        self.state = ChatBotState.UNINITIALIZED

        self.embeddings: Optional[Embeddings] = None
        self.vector_db: Optional[VectorDB] = None
        self.llm: Optional[BaseChatModel] = None
        self.chain: Optional[RetrievalChain] = None

    @property
    def mode(self) -> ResponseMode:
        return self.prompts.mode

    @property
    def is_ready(self) -> bool:
        return self.state is ChatBotState.READY

    def initialize(self) -> None:
        """Build embeddings, vector store, chat model and retrieval chain.

        Raises:
            InitializationError: If any of them fails to build, or if this
                instance was already initialized (successfully or not).
        """
        if self.state is not ChatBotState.UNINITIALIZED:
            raise InitializationError(f"Chatbot can only be initialized once (state: {self.state.value})")

        self.state = ChatBotState.INITIALIZING
        cfg = self.config
        log.info(f"Initializing chatbot (provider={cfg.provider}, collection='{cfg.collection_name}')")

        try:
            embeddings = get_embeddings(
                model_name=cfg.embedding_model_name,
                provider=cfg.provider,
                api_key=cfg.api_key,
                base_url=config.OLLAMA_BASE_URL,
                verify_connection=config.VERIFY_EMB_CONNECTION,
            )
            vector_db = VectorDB(
                embeddings=embeddings,
                qdrant_url=cfg.vector_store_url,
                collection_name=cfg.collection_name,
                retriever_num_docs=cfg.retriever_k,
            )
            llm = get_llm(
                model_name=cfg.chat_model_name,
                temperature=cfg.temperature,
                provider=cfg.provider,
                api_key=cfg.api_key,
                base_url=config.OLLAMA_BASE_URL,
                verify_connection=config.VERIFY_LLM_CONNECTION,
            )
            chain = build_rag_chain(llm=llm, retriever=vector_db.get_retriever(), prompts=self.prompts)

        except Exception as e:
            self.state = ChatBotState.FAILED
            log.exception(f"Failed to initialize chatbot: {e}")
            raise InitializationError(f"Failed to initialize chatbot: {e}") from e

        # Publish everything at once, never a half built pipeline:
        self.embeddings, self.vector_db, self.llm, self.chain = embeddings, vector_db, llm, chain
        self.state = ChatBotState.READY
        log.info("Chatbot initialized and ready.")

    async def process_message(self, question: str, history: Any = None,
                              timeout: Optional[float] = config.CHAT_TIMEOUT_SECONDS) -> str:
        """Answer one chat message.

        Args:
            question (str): The latest user message.
            history (Any): The full transcript, latest message included, as sent by the client.
            timeout (Optional[float]): Deadline in seconds for the whole pipeline. None or 0 disables it.

        Returns:
            str: The cleaned answer, in the chatbot's response mode.

        Raises:
            NotInitializedError: If the chatbot is not ready. No external call is made.
            asyncio.TimeoutError: If the deadline expires.
            Exception: Any embeddings, model or vector store error, unchanged.
        """
        if self.state is not ChatBotState.READY:
            raise NotInitializedError(f"Chatbot not initialized (state: {self.state.value})")

        chat_history = normalize_chat_history(history if history is not None else [])
        log.info(f"Processing message with {len(chat_history)} history turns: '{question[:80]}'")

        try:
            if timeout:
                result = await asyncio.wait_for(self.chain.ainvoke(question, chat_history), timeout=timeout)
            else:
                result = await self.chain.ainvoke(question, chat_history)

        except Exception as e:
            log.exception(f"Error processing message: {e}")
            raise

        log.info(f"Answer generated from {len(result['source_documents'])} retrieved documents.")
        return clean_response(result["answer"], self.mode)

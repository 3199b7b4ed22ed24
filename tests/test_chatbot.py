"""Tests for the ChatBot orchestrator: lifecycle, answers and error propagation."""

import asyncio
from unittest.mock import Mock, patch

import pytest

from conftest import FakeVectorStore, TestConstants
from llm_system.chains.prompts import PromptSet
from llm_system.chatbot import (
    ChatBot,
    ChatBotState,
    InitializationError,
    NotInitializedError,
)
from llm_system.core.response import ResponseMode


def _transcript(*pairs):
    history = []
    for user, assistant in pairs:
        history.append({"role": "user", "content": user})
        if assistant is not None:
            history.append({"role": "assistant", "content": assistant})
    return history


async def test_process_message_before_initialize_makes_no_calls(bot_config):
    bot = ChatBot(bot_config)

    with (
        patch("llm_system.chatbot.get_embeddings") as get_embeddings,
        patch("llm_system.chatbot.VectorDB") as vector_db,
        patch("llm_system.chatbot.get_llm") as get_llm,
    ):
        with pytest.raises(NotInitializedError):
            await bot.process_message(TestConstants.TV_QUESTION, [])

    get_embeddings.assert_not_called()
    vector_db.assert_not_called()
    get_llm.assert_not_called()
    assert bot.state is ChatBotState.UNINITIALIZED


def test_initialize_reaches_ready(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, [TestConstants.FENCED_HTML_ANSWER])

    assert bot.state is ChatBotState.READY
    assert bot.is_ready
    assert bot.chain is not None
    assert bot.vector_db is not None


def test_initialize_failure_leaves_bot_failed(bot_config, fake_embeddings):
    bot = ChatBot(bot_config)
    cause = ConnectionError("qdrant down")

    with (
        patch("llm_system.chatbot.get_embeddings", return_value=fake_embeddings),
        patch("llm_system.chatbot.VectorDB", side_effect=cause),
        patch("llm_system.chatbot.get_llm") as get_llm,
    ):
        with pytest.raises(InitializationError) as exc_info:
            bot.initialize()

    assert exc_info.value.__cause__ is cause
    assert bot.state is ChatBotState.FAILED
    assert bot.vector_db is None
    assert bot.chain is None
    get_llm.assert_not_called()


async def test_failed_bot_refuses_messages(bot_config):
    bot = ChatBot(bot_config)
    with patch("llm_system.chatbot.get_embeddings", side_effect=ValueError("bad provider")):
        with pytest.raises(InitializationError):
            bot.initialize()

    with pytest.raises(NotInitializedError):
        await bot.process_message("hello", [])


def test_initialize_only_once(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, ["x"])

    with pytest.raises(InitializationError):
        bot.initialize()
    assert bot.state is ChatBotState.READY


async def test_fenced_html_answer_is_cleaned(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, [TestConstants.FENCED_HTML_ANSWER])

    answer = await bot.process_message(TestConstants.TV_QUESTION, [])

    assert answer == TestConstants.CLEAN_HTML_ANSWER
    # Empty history: the raw question is the search query.
    assert fake_store.queries == [TestConstants.TV_QUESTION]


async def test_markdown_answer_is_returned_unmodified(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, [TestConstants.MARKDOWN_CODE_ANSWER], mode=ResponseMode.MARKDOWN)

    answer = await bot.process_message("Show me some code", [])

    assert bot.mode is ResponseMode.MARKDOWN
    assert answer == TestConstants.MARKDOWN_CODE_ANSWER


async def test_follow_up_question_is_rewritten_before_retrieval(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, ["55 inch OLED TVs under $1000", "<p>Model A</p>"])
    history = _transcript(("What TVs do you have?", "<p>Model A and Model B</p>"), ("Under $1000?", None))

    answer = await bot.process_message("Under $1000?", history)

    assert answer == "<p>Model A</p>"
    assert fake_store.queries == ["55 inch OLED TVs under $1000"]


async def test_sequential_calls_do_not_cross_contaminate(chatbot_factory, fake_store):
    bot = chatbot_factory(
        fake_store,
        ["standalone query one", "<p>answer one</p>", "standalone query two", "<p>answer two</p>"],
    )

    first = await bot.process_message("and cheaper?", _transcript(("TVs?", "<p>A</p>"), ("and cheaper?", None)))
    second = await bot.process_message("and bigger?", _transcript(("Monitors?", "<p>B</p>"), ("and bigger?", None)))

    assert first == "<p>answer one</p>"
    assert second == "<p>answer two</p>"
    assert fake_store.queries == ["standalone query one", "standalone query two"]


async def test_vector_store_error_propagates_unchanged(chatbot_factory, sample_documents):
    error = RuntimeError("qdrant exploded")
    bot = chatbot_factory(FakeVectorStore(sample_documents, error=error), ["unused"])

    with pytest.raises(RuntimeError) as exc_info:
        await bot.process_message(TestConstants.TV_QUESTION, [])

    assert exc_info.value is error
    assert bot.state is ChatBotState.READY


async def test_malformed_history_still_answers(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, [TestConstants.FENCED_HTML_ANSWER])

    answer = await bot.process_message(TestConstants.TV_QUESTION, "definitely not a list")

    assert answer == TestConstants.CLEAN_HTML_ANSWER
    assert fake_store.queries == [TestConstants.TV_QUESTION]


async def test_process_message_times_out(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, ["unused"])

    async def slow_chain(*args, **kwargs):
        await asyncio.sleep(5)

    bot.chain = Mock(ainvoke=slow_chain)

    with pytest.raises(asyncio.TimeoutError):
        await bot.process_message(TestConstants.TV_QUESTION, [], timeout=0.01)


async def test_timeout_can_be_disabled(chatbot_factory, fake_store):
    bot = chatbot_factory(fake_store, [TestConstants.FENCED_HTML_ANSWER])

    answer = await bot.process_message(TestConstants.TV_QUESTION, [], timeout=None)

    assert answer == TestConstants.CLEAN_HTML_ANSWER


def test_default_prompts_follow_configured_mode(bot_config):
    with patch("llm_system.chatbot.config.RESPONSE_MODE", "markdown"):
        bot = ChatBot(bot_config)

    assert bot.mode is ResponseMode.MARKDOWN
    assert bot.prompts == PromptSet.for_mode(ResponseMode.MARKDOWN)

from typing import List, TypedDict

from langchain_classic.chains import create_history_aware_retriever, create_retrieval_chain
from langchain_classic.chains.combine_documents import create_stuff_documents_chain
from langchain_core.documents import Document
from langchain_core.messages import BaseMessage
from langchain_core.runnables import Runnable
from langchain_core.retrievers import BaseRetriever
from langchain_core.language_models.chat_models import BaseChatModel

from .prompts import PromptSet

from logger import get_logger
log = get_logger(name="chains_rag")


class ChainResult(TypedDict):
    answer: str
    source_documents: List[Document]


class RetrievalChain:
    """The composed history-aware RAG chain behind one chatbot.

    Exposes a single operation, `invoke(input, history)`, plus its awaitable
    twin. Holds no per-call state, so one instance serves concurrent calls.
    """

    def __init__(self, runnable: Runnable):
        self.runnable = runnable

    @staticmethod
    def _to_result(output: dict) -> ChainResult:
        return {"answer": output["answer"], "source_documents": output.get("context", [])}

    def invoke(self, input: str, history: List[BaseMessage]) -> ChainResult:
        output = self.runnable.invoke({"input": input, "chat_history": history})
        return self._to_result(output)

    async def ainvoke(self, input: str, history: List[BaseMessage]) -> ChainResult:
        output = await self.runnable.ainvoke({"input": input, "chat_history": history})
        return self._to_result(output)


def build_rag_chain(llm: BaseChatModel, retriever: BaseRetriever, prompts: PromptSet) -> RetrievalChain:
    """Builds a Conversational RAG (Retrieval-Augmented Generation) chain.

    Args:
        llm (BaseChatModel): The model for both query condensation and answer synthesis.
        retriever (BaseRetriever): The retriever to fetch relevant documents.
        prompts (PromptSet): Condensation and synthesis instructions.

    Returns:
        RetrievalChain: A chain that takes the user input and chat history and
        returns the final answer with the documents it was based on.
    """

    log.info(f"Building the Conversational RAG Chain (mode={prompts.mode.value})...")

    # Chain to condense the history and retrieve relevant documents
    # 3 User Input + Chat History > Condense Template > Standalone Query > Get Docs
    # (with an empty history the raw input goes straight to the retriever)
    retriever_chain = create_history_aware_retriever(llm, retriever, prompts.condense_template())
    log.info("Created the retriever chain with history condensation.")

    # Chain to combine the retrieved documents and get the final answer
    # 4 Multiple Docs > Combine All > Synthesis Template > Final Output
    qa_chain = create_stuff_documents_chain(llm=llm, prompt=prompts.synthesis_template())
    log.info("Created the QA chain with synthesis template.")

    # Main RAG Chain:
    # 2 Input + Chat History > [ `Condense` > `Get Docs` ] > [ `Combine` > `Synthesis` ] > Output
    rag_chain = create_retrieval_chain(retriever_chain, qa_chain)
    log.info("Created the main RAG chain.")

    # 1 Final Conversational RAG Chain:
    return RetrievalChain(rag_chain)

"""LLM System Package: This package contains the langchain-based RAG chatbot.
It includes modules for:
- Core: Vector database, LLM handles, chat history normalization, response cleanup and ingestion.
- Utils: Document loading, text splitting utility functions.
- Chains: Prompt templates and the history-aware retrieval chain.
- Chatbot: The `ChatBot` orchestrator which wires everything into one pipeline.
"""

"""
config.py - Central configuration for the RAG chatbot.

This module stores all configurable constants related to:
- LLM provider, chat model and embeddings
- Qdrant Vector Database
- Retrieval and response formatting
- Chunking for context ingestion
"""

import os
from dotenv import load_dotenv

load_dotenv()


# Provider configuration:
#   - "google": Gemini chat + Google Generative AI embeddings (needs GEMINI_API_KEY)
#   - "ollama": local Ollama server for both chat and embeddings
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "google").lower()
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

# Model configuration::
LLM_CHAT_MODEL_NAME: str = os.getenv("CHAT_MODEL", "gemini-1.5-flash")
LLM_CHAT_TEMPERATURE: float = 0.7                       # Fixed, not tunable per call
EMB_MODEL_NAME: str = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")


# Verification configuration:
#   - Whether to immediately verify the connection to
#   - the LLM models and the Embeddings models after initialization.
VERIFY_LLM_CONNECTION: bool = False
VERIFY_EMB_CONNECTION: bool = False


# Qdrant Vector Database Configuration:
QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_COLLECTION_NAME: str = os.getenv("COLLECTION_NAME", "my_collection")


# Document Retrieval properties:
RETRIEVER_K: int = 50                                   # Top-K docs per (rewritten) query


# Response properties:
#   - "html": answers are HTML fragments, fences are cleaned up after generation
#   - "markdown": answers are Markdown, returned untouched
RESPONSE_MODE: str = os.getenv("RESPONSE_MODE", "html").lower()

# Max seconds for one chat message end-to-end. 0 disables the deadline.
CHAT_TIMEOUT_SECONDS: float = float(os.getenv("CHAT_TIMEOUT_SECONDS", "120"))


# Document Chunking properties (context file ingestion):
DOC_CHAR_LIMIT: int = 2000                              # Char limit for each doc.
DOC_OVERLAP_NO: int = 250                               # Char limit for chunk overlap.

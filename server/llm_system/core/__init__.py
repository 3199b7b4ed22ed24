"""Core module of the LLM System package.
Contains following components:
- Database: Manages the Qdrant vector store and embeddings.
- LLM: Builds the chat model for the configured provider.
- History: Normalizes client transcripts into langchain messages.
- Response: Cleans raw model output for the active response mode.
- Ingestion: Handles the ingestion of context files into the vector database.
"""

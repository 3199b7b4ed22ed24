from typing import Optional

from langchain_ollama import ChatOllama
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.language_models.chat_models import BaseChatModel as T_LLM

from logger import get_logger
log = get_logger(name="core_llm")


def get_llm(model_name: str, temperature: float, provider: str = "google",
            api_key: Optional[str] = None, base_url: Optional[str] = None,
            verify_connection: bool = False) -> T_LLM:
    """Get the chat model with the specified parameters.
    The temperature is fixed here, once, and never changed per call.

    Args:
        model_name (str): The name of the chat model to use.
        temperature (float): The sampling temperature for the model.
        provider (str): Either "google" (Gemini) or "ollama".
        api_key (Optional[str]): Credential for the Google provider.
        base_url (Optional[str]): Server URL for the Ollama provider.
        verify_connection (bool): Whether to verify the connection to the model.

    Returns:
        BaseChatModel: An instance of the chat model configured with the specified parameters.

    Raises:
        ValueError: If the provider is not supported.
        RuntimeError: If the connection verification fails.
    """

    log.info(f"Initializing LLM(provider={provider}, model={model_name}, temp={temperature})")

    if provider == "google":
        model = ChatGoogleGenerativeAI(model=model_name, google_api_key=api_key, temperature=temperature)
    elif provider == "ollama":
        model = ChatOllama(model=model_name, base_url=base_url, temperature=temperature)
    else:
        raise ValueError(f"Unsupported LLM provider '{provider}'. Use 'google' or 'ollama'.")

    if verify_connection:
        try:
            _ = model.invoke("ping")
            log.info(f"LLM model '{model_name}' initialized and connection verified.")

        except Exception as e:
            log.error(f"Failed to initialize LLM model '{model_name}': {e}")
            raise RuntimeError(f"Could not initialize LLM model '{model_name}'") from e
    else:
        log.warning(f"LLM model '{model_name}' initialized without connection verification.")

    return model

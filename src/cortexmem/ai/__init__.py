from .adapter import AIAdapter
from .openai import OpenAIAdapter
from .ollama import OllamaAdapter
from .synthetic import SyntheticAdapter

__all__ = ["AIAdapter", "OpenAIAdapter", "OllamaAdapter", "SyntheticAdapter"]

from .llm import LLMClientPort
from .repos import PersonGatewayPort, JobStorePort
from .sink import PartialResultSink

__all__ = [
    "LLMClientPort",
    "PersonGatewayPort",
    "JobStorePort",
    "PartialResultSink",
]

from sse_gateway.domain.account import Account, Credentials, LastError
from sse_gateway.domain.chat_result import ChatResult
from sse_gateway.domain.combo import ComboDefinition

__all__ = ["Account", "ChatResult", "Credentials", "LastError", "ComboDefinition"]

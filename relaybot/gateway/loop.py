"""
Reasoning loop: drives the model through search rounds to a final answer.

One cycle handles one inbound user message:

    THINKING -> (SEARCH_REQUESTED -> THINKING)* -> DONE

Each THINKING entry is one model call; at most ``max_attempts`` calls are
made. The cycle context (system prompt, persisted history, the new user
turn and any search scratchpad) lives only in memory; only the user
message and the final answer are written back to history.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Protocol

from relaybot.config import settings
from relaybot.gateway.protocol import SearchRequest, parse_reply
from relaybot.gateway.transport import MessageHandle, Transport
from relaybot.services.formatting import remove_markdown
from relaybot.services.sessions import ConversationStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Eres Gemini, un agente de IA para chat. Tu objetivo es proporcionar respuestas "
    "precisas y actuales usando herramientas de búsqueda de forma autónoma.\n\n"
    "## PROCESO DE PENSAMIENTO AUTÓNOMO ##\n"
    "1.  **Analiza:** Recibes un mensaje del usuario.\n"
    "2.  **Planifica y Ejecuta Búsqueda:** Si necesitas información actual, responde "
    "ÚNICAMENTE con el comando `buscar:`. Puedes hacer múltiples búsquedas separadas por `|`.\n"
    "    - Formato: `buscar: [pregunta 1] | [pregunta 2]`\n"
    "    - Ejemplo: `buscar: precio actual de Bitcoin | últimas noticias sobre la "
    "inteligencia artificial`\n"
    "3.  **Recibe Resultados:** El sistema te entregará los resultados de tu búsqueda.\n"
    "4.  **Evalúa y Re-busca (Opcional):** Analiza los resultados. Si son insuficientes, "
    "puedes volver al paso 2 y ejecutar una nueva búsqueda para obtener más detalles.\n"
    "## >> SÍNTESIS FINAL (ACCIÓN OBLIGATORIA) << ##\n"
    "5.  **Una vez que tengas información suficiente de tus búsquedas, tu ÚNICA y ÚLTIMA "
    "tarea es generar la respuesta final para el usuario.**\n"
    "    - **NO** emitas más comandos `buscar`.\n"
    "    - **FORMATO ESTRICTO:** La respuesta DEBE ser **texto plano**. No incluyas NUNCA "
    "markdown (como `*negrita*`, `_cursiva_`, `~tachado~`, `[]()`), código, o emojis.\n"
    "    - **OBJETIVO:** Sintetiza toda la información en una respuesta corta, precisa y "
    "en lenguaje natural para chat (2-5 líneas).\n\n"
    "**IMPORTANTE:** Las notificaciones que el sistema envía al usuario (\"Buscando...\") "
    "son para su información y NO forman parte de nuestro historial. Ignóralas."
)

FALLBACK_REPLY = (
    "Lo siento, no pude procesar tu solicitud después de varios intentos. "
    "Por favor, intenta reformular tu pregunta."
)
MODEL_ERROR_REPLY = "Lo siento, hubo un error al procesar tu mensaje."
MODEL_BUSY_REPLY = (
    "Lo siento, el servicio está experimentando alta demanda. "
    "Por favor, intenta de nuevo en unos momentos."
)


class LoopState(Enum):
    """Where a reasoning cycle currently is."""

    THINKING = "thinking"
    SEARCH_REQUESTED = "search_requested"
    DONE = "done"


class Searcher(Protocol):
    async def search(self, queries: list[str]) -> str: ...


@dataclass
class CycleResult:
    """Outcome of one reasoning cycle."""

    reply: str
    model_calls: int
    searches: int
    delivered: bool
    status_handle: MessageHandle | None = None


def searching_notice(queries: tuple[str, ...]) -> str:
    return f"Buscando: {', '.join(queries)}..."


class ReasoningLoop:
    """Runs reasoning cycles for inbound messages.

    Args:
        complete: Coroutine taking the chat turns and returning the model's text
        searcher: Object with an async ``search(queries) -> str``
        transport: Outbound messaging
        store: Conversation history persistence
        max_attempts: Ceiling on model calls per cycle
    """

    def __init__(
        self,
        complete: Callable[[list[dict]], Awaitable[str]],
        searcher: Searcher,
        transport: Transport,
        store: ConversationStore,
        max_attempts: int | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.complete = complete
        self.searcher = searcher
        self.transport = transport
        self.store = store
        self.max_attempts = max_attempts or settings.MAX_ATTEMPTS
        self.system_prompt = system_prompt

    async def run(self, conversation_id: str, user_text: str) -> CycleResult:
        """Answer one user message: think, deliver, then record the exchange."""
        history = await self.store.get_history(conversation_id)
        context = [
            {"role": "system", "content": self.system_prompt},
            *history,
            {"role": "user", "content": user_text},
        ]

        result = await self.think(conversation_id, context)
        result.delivered = await self.deliver(
            conversation_id, result.reply, result.status_handle
        )

        if result.delivered:
            await self.store.append_exchange(conversation_id, user_text, result.reply)
        else:
            logger.error("Reply was not delivered, history left unchanged")
        return result

    async def think(self, conversation_id: str, context: list[dict]) -> CycleResult:
        """
        Drive the model until it answers or the attempt ceiling is reached.

        ``context`` is extended in place with the search scratchpad. The
        returned reply is already stripped of Markdown.
        """
        state = LoopState.THINKING
        status_handle: MessageHandle | None = None
        reply: str | None = None
        attempts = 0
        searches = 0

        while state is not LoopState.DONE:
            if attempts >= self.max_attempts:
                logger.warning(f"No final answer after {attempts} attempts")
                state = LoopState.DONE
                break

            attempts += 1
            logger.info(f"Reasoning attempt {attempts}/{self.max_attempts}")
            action = parse_reply(await self._call_model(context))

            if isinstance(action, SearchRequest):
                state = LoopState.SEARCH_REQUESTED
                logger.info(f"Model requested {len(action.queries)} searches")
                context.append({"role": "assistant", "content": action.raw})
                status_handle = await self._notify_searching(
                    conversation_id, action.queries, status_handle
                )
                results = await self.searcher.search(list(action.queries))
                searches += 1
                context.append({"role": "system", "content": results})
                state = LoopState.THINKING
            else:
                reply = action.text
                state = LoopState.DONE

        final = remove_markdown(reply) if reply else ""
        return CycleResult(
            reply=final or FALLBACK_REPLY,
            model_calls=attempts,
            searches=searches,
            delivered=False,
            status_handle=status_handle,
        )

    async def deliver(
        self,
        conversation_id: str,
        text: str,
        status_handle: MessageHandle | None = None,
    ) -> bool:
        """
        Send the final reply, replacing the "searching" notice when there is one.

        A failed send or edit is retried once as a brand-new message.
        Returns whether the user got the text.
        """
        try:
            if status_handle is not None:
                await self.transport.edit(conversation_id, status_handle, text)
                logger.info("Reply delivered by editing the status message")
            else:
                await self.transport.send(conversation_id, text)
                logger.info("Reply delivered")
            return True
        except Exception as e:
            logger.error(f"Failed to deliver reply, retrying as a new message: {e}")

        try:
            await self.transport.send(conversation_id, text)
            logger.info("Reply delivered as a new message after failed attempt")
            return True
        except Exception:
            logger.exception("Failed to deliver reply")
            return False

    async def _call_model(self, context: list[dict]) -> str:
        try:
            return await self.complete(context)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.error(f"Model call failed (status={status_code}): {e}")
            return MODEL_BUSY_REPLY if status_code == 429 else MODEL_ERROR_REPLY

    async def _notify_searching(
        self,
        conversation_id: str,
        queries: tuple[str, ...],
        status_handle: MessageHandle | None,
    ) -> MessageHandle | None:
        """Show the searching notice: first as a new message, then by editing it."""
        text = searching_notice(queries)
        try:
            if status_handle is None:
                return await self.transport.send(conversation_id, text)
            await self.transport.edit(conversation_id, status_handle, text)
        except Exception as e:
            logger.warning(f"Could not show searching notice: {e}")
        return status_handle

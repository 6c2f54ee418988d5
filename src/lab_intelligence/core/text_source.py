# ============================================================================
# src/lab_intelligence/core/text_source.py
# ============================================================================
"""
OCR / document-conversion collaborator.

Any callable taking a document (path, bytes, upload object...) and
returning (text, errors), either directly or as an awaitable. Plain
callables run in a worker thread so OCR never blocks the event loop.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Sequence, Tuple, Union

TextSourceResult = Tuple[str, Sequence[str]]
TextSource = Callable[[Any], Union[TextSourceResult, Awaitable[TextSourceResult]]]


def _is_async_source(source: TextSource) -> bool:
    return inspect.iscoroutinefunction(source) or inspect.iscoroutinefunction(
        getattr(source, '__call__', None)
    )


async def read_text(source: TextSource, document: Any) -> Tuple[str, List[str]]:
    """Call a sync or async text source and normalize its result."""
    if _is_async_source(source):
        result = await source(document)
    else:
        result = await asyncio.to_thread(source, document)
        if inspect.isawaitable(result):
            result = await result

    text, errors = result
    return text or "", [str(e) for e in (errors or [])]

"""
Validation middleware - pydantic-backed per-slot validation.

``validation_middleware(schema, slot)`` builds a ``(request, response, next)``
stage that transforms the raw slot value into an instance of ``schema``
(lax coercion and defaults by default) and either stores it on the request
or answers 400:

    {"ok": false, "message": "Validation error",
     "errors": [{"field": "title", "constraints": ["Field required"]}]}

An adapter crash (anything other than a validation rejection) is answered
with 400 ``{"ok": false, "message": "Validation middleware failed", "error": ...}``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING, Union
import logging

from pydantic import TypeAdapter, ValidationError

from .controller.metadata import ParameterSlot

if TYPE_CHECKING:
    from .request import Request
    from .response import Response


logger = logging.getLogger("talon.validation")

_TYPE_ADAPTER_CACHE: Dict[Any, TypeAdapter] = {}


def get_type_adapter(schema: Any) -> TypeAdapter:
    """Return a cached ``TypeAdapter`` for ``schema``."""
    try:
        return _TYPE_ADAPTER_CACHE[schema]
    except KeyError:
        adapter = TypeAdapter(schema)
        _TYPE_ADAPTER_CACHE[schema] = adapter
        return adapter
    except TypeError:
        # Unhashable schema descriptors are not cached
        return TypeAdapter(schema)


def slot_source(request: "Request", slot: ParameterSlot) -> Any:
    """
    Plain-object source for ``slot``.

    Headers are exposed under their lower-case name and with ``-``
    replaced by ``_`` so both spellings can be declared as fields.
    """
    if slot is ParameterSlot.HEADERS:
        source: Dict[str, str] = {}
        for name, value in request.headers.to_dict().items():
            source[name] = value
            source.setdefault(name.replace("-", "_"), value)
        return source
    return request.raw(slot)


def format_errors(exc: ValidationError, slot: ParameterSlot) -> List[Dict[str, Any]]:
    """Group pydantic errors by dotted field path, keeping first-seen order."""
    grouped: Dict[str, List[str]] = {}
    for err in exc.errors(include_url=False):
        loc = [str(part) for part in err.get("loc", ()) if part != "__root__"]
        field = ".".join(loc) if loc else slot.value
        grouped.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return [{"field": field, "constraints": messages} for field, messages in grouped.items()]


def validation_middleware(
    schema: Any,
    slot: Union[ParameterSlot, str],
    *,
    log_values: bool = False,
    strict: Optional[bool] = None,
):
    """
    Build the validation stage for one request slot.

    Args:
        schema: Anything ``pydantic.TypeAdapter`` accepts
        slot: ``params``, ``query``, ``body`` or ``headers``
        log_values: Log raw and transformed values at INFO level
        strict: Use pydantic strict mode
    """
    slot = ParameterSlot(slot)
    if slot not in (ParameterSlot.PARAMS, ParameterSlot.QUERY, ParameterSlot.BODY, ParameterSlot.HEADERS):
        raise ValueError(f"Cannot validate the {slot.value!r} slot")
    schema_name = getattr(schema, "__name__", repr(schema))

    async def validate_slot(request: "Request", response: "Response", next: Any) -> None:
        try:
            source = slot_source(request, slot)
            if log_values:
                logger.info("Validating %s against %s: %r", slot.value, schema_name, source)
            instance = get_type_adapter(schema).validate_python(source, strict=strict)
        except ValidationError as exc:
            errors = format_errors(exc, slot)
            logger.info(
                "Validation of %s failed for %s %s: %d error(s)",
                slot.value, request.method, request.path, len(errors),
            )
            response.json(
                {"ok": False, "message": "Validation error", "errors": errors},
                status=400,
            )
            return
        except Exception as exc:
            logger.warning(
                "Validation middleware failed on %s for %s %s: %s",
                slot.value, request.method, request.path, exc,
            )
            response.json(
                {"ok": False, "message": "Validation middleware failed", "error": str(exc)},
                status=400,
            )
            return

        if log_values:
            logger.info("Validated %s: %r", slot.value, instance)
        request.set_validated(slot, instance)
        await next()

    validate_slot.__name__ = f"validate_{slot.value}"
    validate_slot.__qualname__ = f"validate_{slot.value}[{schema_name}]"
    return validate_slot

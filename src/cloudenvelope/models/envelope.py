"""CloudEvents v0.1 envelope.

A ``CloudEvent`` is fully validated when constructed and frozen afterwards.
The one exception is ``publisher``, an in-process reference to whoever
emitted or relayed the event: it may be given at construction or attached
exactly once later with ``set_publisher``. It is not a CloudEvents attribute
and never appears in ``to_attributes()``.

Fields are exposed under python names; each carries its CloudEvents v0.1
attribute name as alias (``cloudEventsVersion``, ``eventType``, ...), and
either spelling is accepted on construction.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StringConstraints,
    ValidationError,
    field_serializer,
    field_validator,
)

from cloudenvelope.errors import IllegalStateError, InvalidArgumentError

log = logging.getLogger(__name__)

SPEC_VERSION = "0.1"

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]

_EMPTY_EXTENSIONS: Mapping[str, Any] = MappingProxyType({})

# Guards check-then-set of the publisher slot; reads go without it.
_publisher_lock = threading.Lock()


def _frozen(extensions: Mapping[str, Any]) -> Mapping[str, Any]:
    if not extensions:
        return _EMPTY_EXTENSIONS
    return MappingProxyType(dict(extensions))


def _invalid(exc: ValidationError) -> InvalidArgumentError:
    errors = exc.errors(include_url=False)
    fields = [".".join(str(part) for part in err["loc"]) or "<root>" for err in errors]
    log.debug("cloudevent.rejected fields=%s", fields)
    message = "; ".join(f"{name}: {err['msg']}" for name, err in zip(fields, errors))
    return InvalidArgumentError(message, context={"fields": fields, "errors": errors})


class CloudEvent(BaseModel):
    """One event occurrence, per CloudEvents v0.1.

    Whether ``event_type``, ``event_type_version``, ``event_id`` and
    ``event_time`` describe the event or the occurrence it reports is left
    open by the CloudEvents spec; they are kept exactly as given.

    Raises:
        InvalidArgumentError: a required attribute is missing, ``None`` or
            empty, an optional string is present but empty, or a value has
            the wrong type.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    spec_version: NonEmptyStr = Field(alias="cloudEventsVersion")
    event_type: NonEmptyStr = Field(alias="eventType")
    event_type_version: NonEmptyStr | None = Field(default=None, alias="eventTypeVersion")
    source: str = Field(alias="source")
    event_id: NonEmptyStr = Field(alias="eventID")
    event_time: datetime = Field(
        default_factory=lambda: datetime.now(UTC), alias="eventTime"
    )
    extensions: Mapping[str, Any] = Field(
        default_factory=lambda: _EMPTY_EXTENSIONS, alias="extensions"
    )
    content_type: str | None = Field(default=None, alias="contentType")  # e.g. a media type
    schema_url: str | None = Field(default=None, alias="schemaURL")
    data: Any = Field(default=None, alias="data")

    _publisher: Any = PrivateAttr(default=None)

    def __init__(self, /, publisher: Any = None, **fields: Any) -> None:
        try:
            super().__init__(**fields)
        except ValidationError as exc:
            raise _invalid(exc) from exc
        self._publisher = publisher

    @classmethod
    def minimal(
        cls,
        publisher: Any,
        spec_version: str,
        event_type: str,
        event_type_version: str | None,
        source: str,
        event_id: str,
        event_time: datetime | None = None,
        data: Any = None,
    ) -> CloudEvent:
        """Build an event with a known publisher and no extensions,
        content type or schema URL."""
        return cls(
            publisher=publisher,
            spec_version=spec_version,
            event_type=event_type,
            event_type_version=event_type_version,
            source=source,
            event_id=event_id,
            event_time=event_time,
            data=data,
        )

    @classmethod
    def from_attributes(
        cls, attributes: Mapping[str, Any], *, publisher: Any = None
    ) -> CloudEvent:
        """Build an event from a mapping keyed by CloudEvents attribute names."""
        attrs = dict(attributes)
        bad = [key for key in attrs if not isinstance(key, str) or key == "publisher"]
        if bad:
            raise InvalidArgumentError(
                f"not CloudEvents attributes: {bad!r}",
                context={"fields": [str(key) for key in bad]},
            )
        return cls(publisher=publisher, **attrs)

    # ── Validators ─────────────────────────────────────────────────────────

    @field_validator("event_time", mode="before")
    @classmethod
    def default_event_time(cls, v: Any) -> Any:
        if v is None:
            return datetime.now(UTC)
        return v

    @field_validator("extensions", mode="before")
    @classmethod
    def snapshot_extensions(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, Mapping):
            # dict(v) is a single C-level copy for plain dicts
            return dict(v)
        return v

    @field_validator("extensions")
    @classmethod
    def freeze_extensions(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return _frozen(v)

    @field_serializer("extensions")
    def serialize_extensions(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return dict(v)

    # ── Publisher ──────────────────────────────────────────────────────────

    @property
    def publisher(self) -> Any:
        """Whoever emitted or relayed this event, or None if unknown."""
        return self._publisher

    def set_publisher(self, publisher: Any) -> None:
        """Attach a publisher to an event whose publisher is still unknown.

        Only the first call wins; concurrent callers that lose the race get
        IllegalStateError just like later ones.
        """
        if publisher is None:
            raise InvalidArgumentError(
                "publisher: must not be None", context={"event_id": self.event_id}
            )
        with _publisher_lock:
            existing = self._publisher
            if existing is None:
                self._publisher = publisher
        if existing is not None:
            log.warning(
                "cloudevent.publisher_rejected event_id=%s existing=%r",
                self.event_id,
                existing,
            )
            raise IllegalStateError(
                "publisher is already set",
                context={"event_id": self.event_id},
            )
        log.debug(
            "cloudevent.publisher_set event_id=%s publisher=%r",
            self.event_id,
            publisher,
        )

    # ── Attribute mapping ──────────────────────────────────────────────────

    def to_attributes(self) -> dict[str, Any]:
        """Return the CloudEvents attributes keyed by their wire names.

        Absent optional attributes are left out. Values keep their python
        types; ``publisher`` is never included.
        """
        attrs: dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                continue
            if name == "extensions":
                if not value:
                    continue
                value = dict(value)
            attrs[field.alias or name] = value
        return attrs

    # ── Copying and pickling ───────────────────────────────────────────────

    def model_copy(
        self, *, update: Mapping[str, Any] | None = None, deep: bool = False
    ) -> CloudEvent:
        """Copy the event; fields in ``update`` are validated like a new event."""
        copied = super().model_copy(deep=deep)
        if not update:
            return copied
        fields = {name: getattr(copied, name) for name in type(self).model_fields}
        fields.update(update)
        return type(self)(publisher=copied._publisher, **fields)

    def __getstate__(self) -> dict[Any, Any]:
        # mappingproxy cannot be pickled; ship a plain dict
        state = super().__getstate__()
        fields = dict(state["__dict__"])
        fields["extensions"] = dict(fields["extensions"])
        return {**state, "__dict__": fields}

    def __setstate__(self, state: dict[Any, Any]) -> None:
        fields = dict(state["__dict__"])
        fields["extensions"] = _frozen(fields["extensions"])
        super().__setstate__({**state, "__dict__": fields})

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> CloudEvent:
        clone = type(self).__new__(type(self))
        clone.__setstate__(copy.deepcopy(self.__getstate__(), memo))
        return clone

    def __hash__(self) -> int:
        # source + id identify an event
        return hash((self.source, self.event_id))

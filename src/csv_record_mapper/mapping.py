"""
Field mapping tables: which field(s) feed which destination member.

A ``ClassMap`` is the mutable, fluent declaration surface. ``build()`` checks
the declarations, resolves converters, member accessors and container types
once, and returns an immutable ``MappingTable`` that any number of binder
sessions can share.

Example:
    class_map = ClassMap(Row)
    class_map.map("id")
    class_map.map("name").name("Name", "FullName")
    class_map.map("values").index_range(2)
    table = class_map.build()
"""

import collections.abc
import dataclasses
import logging
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel, ValidationError

from csv_record_mapper.config_models import (
    FIELD_TYPES,
    CultureInfo,
    DateTimeStyles,
    MappingConfig,
    MemberConfig,
    NumberStyles,
    TypeConverterOptions,
)
from csv_record_mapper.converters import (
    FunctionConverter,
    TypeConverter,
    TypeConverterRegistry,
    default_registry,
    unwrap_optional,
)
from csv_record_mapper.exceptions import ConfigurationError
from csv_record_mapper.models import ByIndex, ByIndexRange, ByName

logger = logging.getLogger(__name__)

Selector = Union[ByIndex, ByIndexRange, ByName]

# Abstract container shapes and the concrete type instantiated for them
ABSTRACT_CONTAINERS: Dict[Any, type] = {
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
}

_NO_DEFAULT = object()


@dataclasses.dataclass(frozen=True)
class ContainerShape:
    """Resolved container for an index-range member."""
    container_type: type
    element_type: Any
    is_array: bool


def resolve_container(member_type: Any, override: Optional[type] = None) -> Optional[ContainerShape]:
    """Work out the concrete container and element type for a range member.

    ``tuple[T, ...]`` is array-like (fixed slots); ``list``, ``deque`` and other
    mutable sequences are list-like; abstract sequence shapes resolve to
    ``list``. Unparameterized containers hold strings. Returns None for
    anything that is not a container.
    """
    tp, _ = unwrap_optional(member_type)
    origin = get_origin(tp) or tp
    args = get_args(tp)

    if origin is tuple:
        if args and not (len(args) == 2 and args[1] is Ellipsis):
            return None
        shape = ContainerShape(tuple, args[0] if args else str, True)
    elif origin in ABSTRACT_CONTAINERS:
        shape = ContainerShape(ABSTRACT_CONTAINERS[origin], args[0] if args else str, False)
    elif isinstance(origin, type) and issubclass(origin, collections.abc.MutableSequence):
        shape = ContainerShape(origin, args[0] if args else str, False)
    else:
        return None

    if override is not None:
        if override is tuple:
            if origin is not tuple and origin not in ABSTRACT_CONTAINERS:
                return None
            return ContainerShape(tuple, shape.element_type, True)
        if not (isinstance(override, type) and issubclass(override, collections.abc.MutableSequence)):
            return None
        if isinstance(origin, type) and not issubclass(override, origin) and origin not in ABSTRACT_CONTAINERS:
            return None
        return ContainerShape(override, shape.element_type, False)
    return shape


def member_types(destination_type: type) -> Dict[str, Any]:
    """Annotated public members of a dataclass, pydantic model or plain class, in declaration order."""
    if dataclasses.is_dataclass(destination_type):
        hints = _type_hints(destination_type)
        return {f.name: hints.get(f.name, f.type) for f in dataclasses.fields(destination_type)}
    if isinstance(destination_type, type) and issubclass(destination_type, BaseModel):
        return {name: info.annotation for name, info in destination_type.model_fields.items()}

    hints = _type_hints(destination_type)
    return {
        name: tp for name, tp in hints.items()
        if not name.startswith("_") and get_origin(tp) is not ClassVar
    }


def _type_hints(destination_type: type) -> Dict[str, Any]:
    try:
        return get_type_hints(destination_type)
    except (NameError, TypeError) as e:
        logger.debug(f"Could not evaluate annotations of {destination_type!r}: {e}")
        hints: Dict[str, Any] = {}
        for klass in reversed(destination_type.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


@dataclasses.dataclass(frozen=True)
class MemberAccessor:
    """Reads and writes one named member of a destination instance."""
    name: str

    def get(self, instance: Any) -> Any:
        return getattr(instance, self.name)

    def set(self, instance: Any, value: Any) -> None:
        setattr(instance, self.name, value)


@dataclasses.dataclass(frozen=True)
class MemberBinding:
    """Immutable binding of one destination member to its source field(s)."""
    member: str
    member_type: Any
    accessor: MemberAccessor
    selector: Selector
    converter: TypeConverter
    option_overrides: Tuple[Tuple[str, Any], ...] = ()
    boolean_overrides: Tuple[Tuple[bool, Tuple[str, ...], bool], ...] = ()
    default: Any = None
    has_default: bool = False
    ignore: bool = False
    nullable: bool = False
    element_type: Any = None
    element_nullable: bool = False
    container_type: Optional[type] = None
    is_array: bool = False

    @property
    def is_range(self) -> bool:
        return isinstance(self.selector, ByIndexRange)

    def effective_options(self, base: TypeConverterOptions) -> TypeConverterOptions:
        """Options for this member: ``base`` copied with this member's overrides."""
        if not self.option_overrides and not self.boolean_overrides:
            return base
        overrides = dict(self.option_overrides)
        tokens = {True: base.boolean_true_values, False: base.boolean_false_values}
        for is_true, values, clear in self.boolean_overrides:
            tokens[is_true] = tuple(values) if clear else tokens[is_true] + tuple(values)
        if self.boolean_overrides:
            overrides["boolean_true_values"] = tokens[True]
            overrides["boolean_false_values"] = tokens[False]
        return base.merged(**overrides)

    def header_names(self, count: int = 1) -> List[str]:
        """Header cell(s) written for this member."""
        if self.is_range:
            return [f"{self.member}{i + 1}" for i in range(count)]
        if isinstance(self.selector, ByName):
            return [self.selector.names[0]]
        return [self.member]


@dataclasses.dataclass(frozen=True)
class MappingTable:
    """Built mapping for one destination type. Never mutated after ``build()``."""
    destination_type: type
    bindings: Tuple[MemberBinding, ...]
    factory: Callable[[Dict[str, Any]], Any] = dataclasses.field(repr=False, compare=False)

    @property
    def active_bindings(self) -> Tuple[MemberBinding, ...]:
        return tuple(b for b in self.bindings if not b.ignore)

    def binding(self, member: str) -> MemberBinding:
        for b in self.bindings:
            if b.member == member:
                return b
        raise KeyError(member)

    def create(self, values: Dict[str, Any]) -> Any:
        """Instantiate the destination type from member values."""
        return self.factory(values)


class MemberMap:
    """Fluent declaration for one member; every method returns ``self``."""

    def __init__(self, member: str, member_type: Any):
        self.member = member
        self.member_type = member_type
        self._names: List[str] = [member]
        self._name_set = False
        self._name_index = 0
        self._index: Optional[int] = None
        self._range: Optional[ByIndexRange] = None
        self._container: Optional[type] = None
        self._ignore = False
        self._default: Any = _NO_DEFAULT
        self._converter: Optional[TypeConverter] = None
        self._parse_func: Optional[Callable[[str], Any]] = None
        self._format_func: Optional[Callable[[Any], str]] = None
        self._nullable = False
        self._option_overrides: Dict[str, Any] = {}
        self._boolean_overrides: List[Tuple[bool, Tuple[str, ...], bool]] = []

    def name(self, *names: str) -> "MemberMap":
        """Header names to look for when reading, in order; the first is written."""
        if not names:
            raise ConfigurationError(f"Member '{self.member}': at least one name is required")
        self._names = list(names)
        self._name_set = True
        return self

    def name_index(self, index: int) -> "MemberMap":
        """Use the k-th (0-based) column carrying the name when names repeat."""
        if index < 0:
            raise ConfigurationError(f"Member '{self.member}': name index must be >= 0")
        self._name_index = index
        return self

    def index(self, index: int) -> "MemberMap":
        if index < 0:
            raise ConfigurationError(f"Member '{self.member}': index must be >= 0")
        self._index = index
        return self

    def index_range(self, start: int, end: Optional[int] = None, container: Optional[type] = None) -> "MemberMap":
        """Bind fields ``start..end`` (inclusive) to a list/tuple member.

        With ``end=None`` the range runs to the last field of each record.
        ``container`` overrides the concrete container type.
        """
        if start < 0 or (end is not None and end < 0):
            raise ConfigurationError(f"Member '{self.member}': index range bounds must be >= 0")
        self._range = ByIndexRange(start, end)
        self._container = container
        return self

    def ignore(self, ignore: bool = True) -> "MemberMap":
        self._ignore = ignore
        return self

    def default(self, value: Any) -> "MemberMap":
        """Value used when the field is empty, missing or fails to convert."""
        self._default = value
        return self

    def nullable(self, nullable: bool = True) -> "MemberMap":
        """Bind empty fields to None."""
        self._nullable = nullable
        return self

    def type_converter(self, converter: Union[TypeConverter, type]) -> "MemberMap":
        """Converter instance or class taking precedence over the registry."""
        if isinstance(converter, type) and issubclass(converter, TypeConverter):
            converter = converter()
        if not isinstance(converter, TypeConverter):
            raise ConfigurationError(f"Member '{self.member}': {converter!r} is not a TypeConverter")
        self._converter = converter
        self._parse_func = None
        return self

    def convert_using(self, parse_func: Callable[[str], Any],
                      format_func: Optional[Callable[[Any], str]] = None) -> "MemberMap":
        """Convert with plain functions instead of a registered converter."""
        self._parse_func = parse_func
        self._format_func = format_func
        self._converter = None
        return self

    def type_converter_option(self, culture: Union[CultureInfo, str, None] = None,
                              datetime_style: Optional[DateTimeStyles] = None,
                              number_style: Optional[NumberStyles] = None,
                              format: Optional[str] = None) -> "MemberMap":
        """Per-member conversion options; unset arguments keep the configuration's value."""
        if isinstance(culture, str):
            try:
                culture = CultureInfo.from_name(culture)
            except ValueError as e:
                raise ConfigurationError(f"Member '{self.member}': {e}") from e
        for key, value in (("culture", culture), ("datetime_style", datetime_style),
                           ("number_style", number_style), ("format", format)):
            if value is not None:
                self._option_overrides[key] = value
        return self

    def boolean_values(self, is_true: bool, *values: str, clear: bool = True) -> "MemberMap":
        """Tokens read as True (``is_true``) or False for this member."""
        self._boolean_overrides.append((is_true, tuple(values), clear))
        return self

    def build(self, fallback_index: Optional[int], registry: TypeConverterRegistry) -> MemberBinding:
        name = self.member
        selector: Selector
        shape: Optional[ContainerShape] = None

        if self._range is not None:
            if self._index is not None or self._name_set:
                raise ConfigurationError(f"Member '{name}': index range cannot be combined with index or name")
            shape = resolve_container(self.member_type, self._container)
            if shape is None:
                type_name = getattr(self.member_type, "__name__", str(self.member_type))
                if self._container is not None:
                    type_name = f"{type_name} (container {self._container!r})"
                raise ConfigurationError(
                    f"Member '{name}' of type '{type_name}' is not supported with index range mapping"
                )
            selector = self._range
        elif self._index is not None:
            if self._name_set:
                raise ConfigurationError(f"Member '{name}': declare either name or index, not both")
            selector = ByIndex(self._index)
        else:
            selector = ByName(tuple(self._names), self._name_index, fallback_index)

        value_type = shape.element_type if shape else self.member_type
        if self._parse_func is not None:
            converter: TypeConverter = FunctionConverter(self._parse_func, self._format_func, unwrap_optional(value_type)[0])
        elif self._converter is not None:
            converter = self._converter
        else:
            converter = registry.resolve(value_type)

        binding = MemberBinding(
            member=name,
            member_type=self.member_type,
            accessor=MemberAccessor(name),
            selector=selector,
            converter=converter,
            option_overrides=tuple(self._option_overrides.items()),
            boolean_overrides=tuple(self._boolean_overrides),
            default=None if self._default is _NO_DEFAULT else self._default,
            has_default=self._default is not _NO_DEFAULT,
            ignore=self._ignore,
            nullable=self._nullable or unwrap_optional(self.member_type)[1],
            element_type=shape.element_type if shape else None,
            element_nullable=unwrap_optional(shape.element_type)[1] if shape else False,
            container_type=shape.container_type if shape else None,
            is_array=shape.is_array if shape else False,
        )

        try:
            binding.effective_options(TypeConverterOptions())
        except ValidationError as e:
            raise ConfigurationError(f"Member '{name}': invalid converter options: {e}") from e
        return binding


class ClassMap:
    """Declares how a destination type maps to record fields.

    Use directly or subclass and call ``self.map(...)`` in ``__init__``.
    A map with no declarations maps every annotated member by convention.
    """

    def __init__(self, destination_type: type):
        self.destination_type = destination_type
        self._member_types = member_types(destination_type)
        if not self._member_types:
            raise ConfigurationError(f"Type '{destination_type.__name__}' has no annotated members to map")
        self._maps: Dict[str, MemberMap] = {}

    @property
    def member_maps(self) -> List[MemberMap]:
        return list(self._maps.values())

    def map(self, member: str) -> MemberMap:
        """Declare (or fetch the existing declaration of) a member.

        Raises:
            ConfigurationError: If the destination type has no such member
        """
        if member not in self._member_types:
            raise ConfigurationError(
                f"Type '{self.destination_type.__name__}' has no member '{member}'"
            )
        if member not in self._maps:
            self._maps[member] = MemberMap(member, self._member_types[member])
        return self._maps[member]

    def auto_map(self) -> "ClassMap":
        """Map every annotated member not declared yet, using its name as header."""
        for member in self._member_types:
            self.map(member)
        return self

    def build(self, registry: Optional[TypeConverterRegistry] = None) -> MappingTable:
        """Validate the declarations and produce an immutable MappingTable.

        Raises:
            ConfigurationError: If any declaration is inconsistent
        """
        registry = registry or default_registry
        if not self._maps:
            self.auto_map()

        slots = self._name_slots()
        bindings = [
            member_map.build(slots.get(member_map.member), registry)
            for member_map in self._maps.values()
        ]

        factory = _make_factory(self.destination_type, bindings)
        table = MappingTable(self.destination_type, tuple(bindings), factory)
        logger.debug(f"Built mapping table for {self.destination_type.__name__} with {len(bindings)} binding(s)")
        return table

    def _name_slots(self) -> Dict[str, int]:
        """Field position of each name-selected member when there is no header.

        Name-selected members take the lowest positions not claimed by an
        explicit index or index range, in declaration order.

        Raises:
            ConfigurationError: If an unbounded index range leaves no free position
        """
        active = [m for m in self._maps.values() if not m._ignore]
        claimed = set()
        open_from: Optional[int] = None
        for member_map in active:
            if member_map._range is not None:
                selector = member_map._range
                if selector.end is None:
                    open_from = selector.start if open_from is None else min(open_from, selector.start)
                else:
                    claimed.update(range(selector.start, selector.end + 1))
            elif member_map._index is not None:
                claimed.add(member_map._index)

        slots: Dict[str, int] = {}
        position = 0
        for member_map in active:
            if member_map._range is not None or member_map._index is not None:
                continue
            while position in claimed:
                position += 1
            if open_from is not None and position >= open_from:
                raise ConfigurationError(
                    f"Member '{member_map.member}': no free field position before the "
                    f"unbounded index range starting at {open_from}"
                )
            slots[member_map.member] = position
            position += 1
        return slots


def _make_factory(destination_type: type, bindings: List[MemberBinding]) -> Callable[[Dict[str, Any]], Any]:
    active = {b.member for b in bindings if not b.ignore}

    if dataclasses.is_dataclass(destination_type):
        init_fields = [f for f in dataclasses.fields(destination_type) if f.init]
        required = [
            f.name for f in init_fields
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        ]
        _check_required(destination_type, required, active)
        init_names = {f.name for f in init_fields}

        def create_dataclass(values: Dict[str, Any]) -> Any:
            kwargs = {name: None for name in required}
            kwargs.update((k, v) for k, v in values.items() if k in init_names)
            instance = destination_type(**kwargs)
            for k, v in values.items():
                if k not in init_names:
                    setattr(instance, k, v)
            return instance

        return create_dataclass

    if issubclass(destination_type, BaseModel):
        required = [name for name, info in destination_type.model_fields.items() if info.is_required()]
        _check_required(destination_type, required, active)

        def create_model(values: Dict[str, Any]) -> Any:
            return destination_type(**values)

        return create_model

    accessors = {b.member: b.accessor for b in bindings}

    def create_plain(values: Dict[str, Any]) -> Any:
        instance = destination_type()
        for k, v in values.items():
            accessors[k].set(instance, v)
        return instance

    return create_plain


def _check_required(destination_type: type, required: List[str], active: set) -> None:
    missing = [name for name in required if name not in active]
    if missing:
        raise ConfigurationError(
            f"Type '{destination_type.__name__}' requires unmapped or ignored member(s): {', '.join(missing)}"
        )


def class_map_from_config(config: MappingConfig, registry: Optional[TypeConverterRegistry] = None) -> ClassMap:
    """Create a dataclass and ClassMap from a declarative mapping.

    Raises:
        ConfigurationError: If the record type cannot be created or a default does not convert
    """
    registry = registry or default_registry
    fields = []
    for member in config.members:
        python_type = FIELD_TYPES[member.type]
        if member.index_range is not None:
            fields.append((member.member, List[python_type], dataclasses.field(default_factory=list)))
        elif member.nullable:
            fields.append((member.member, Optional[python_type], dataclasses.field(default=None)))
        else:
            fields.append((member.member, python_type, dataclasses.field(default=None)))

    try:
        record_type = dataclasses.make_dataclass(config.name, fields)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid mapping '{config.name}': {e}") from e

    class_map = ClassMap(record_type)
    for member in config.members:
        member_map = class_map.map(member.member)
        if member.names:
            member_map.name(*member.names).name_index(member.name_index)
        if member.index is not None:
            member_map.index(member.index)
        if member.index_range is not None:
            member_map.index_range(member.index_range.start, member.index_range.end)
        if member.ignore:
            member_map.ignore()
        if "default" in member.model_fields_set:
            member_map.default(_convert_config_default(member, registry))
        if member.nullable:
            member_map.nullable()
        member_map.type_converter_option(culture=member.culture, datetime_style=member.datetime_style,
                                         number_style=member.number_style, format=member.format)
        if member.boolean_true_values is not None:
            member_map.boolean_values(True, *member.boolean_true_values)
        if member.boolean_false_values is not None:
            member_map.boolean_values(False, *member.boolean_false_values)
    return class_map


def _convert_config_default(member: MemberConfig, registry: TypeConverterRegistry) -> Any:
    """Convert a JSON default to the member's type with the member's own options."""
    python_type = FIELD_TYPES[member.type]
    default = member.default
    if default is None or python_type is str:
        return default

    converter = registry.resolve(python_type)

    def convert(value: Any) -> Any:
        if isinstance(value, python_type) or not isinstance(value, (str, int, float)):
            return value
        return converter.parse(str(value), options)

    try:
        options = TypeConverterOptions().merged(
            culture=CultureInfo.from_name(member.culture) if member.culture else None,
            datetime_style=member.datetime_style,
            number_style=member.number_style,
            format=member.format,
        )
        if member.boolean_true_values is not None:
            options = options.with_boolean_values(True, member.boolean_true_values)
        if member.boolean_false_values is not None:
            options = options.with_boolean_values(False, member.boolean_false_values)
        if isinstance(default, list):
            return [convert(v) for v in default]
        return convert(default)
    except ValueError as e:
        raise ConfigurationError(f"Member '{member.member}': invalid default {default!r}: {e}") from e


def as_mapping_table(target: Union[MappingTable, ClassMap, type],
                     registry: Optional[TypeConverterRegistry] = None) -> MappingTable:
    """Accept a built table, a class map or a bare destination type (auto-mapped)."""
    if isinstance(target, MappingTable):
        return target
    if isinstance(target, ClassMap):
        return target.build(registry)
    if isinstance(target, type):
        return ClassMap(target).auto_map().build(registry)
    raise ConfigurationError(f"Cannot build a mapping table from {target!r}")

"""Dynamic object accessor shared by compiled routines and the simulation bridge.

A ``DynamicObject`` wraps mapping (or list) data and gives scripts a fixed
method surface (``_Get``, ``_Set``, ``_Push``, ``_Pop``, ``_ToJSON``,
``_IsDefined``). The DSL spells these ``%Get``, ``%Set``, ... and the compiler
rewrites the names.
"""
import inspect
import json

from rover_backend.errors import RuntimeFault


class _Undefined:
    """Marker returned for missing keys. Falsy, renders as an empty string."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return 'UNDEFINED'

    def __str__(self):
        return ''


UNDEFINED = _Undefined()


def unwrap(value):
    """Return plain data for storage (DynamicObject -> its underlying data)."""
    if isinstance(value, DynamicObject):
        return value.data
    return value


def check_arguments(name, fn, args):
    """Raise RuntimeFault when ``args`` do not fit ``fn``'s signature."""
    try:
        inspect.signature(fn).bind(*args)
    except TypeError as e:
        raise RuntimeFault(f"Bad arguments for {name}: {e}") from None


def to_plain(value):
    """Deep-copy a value into plain JSON-compatible data."""
    value = unwrap(value)
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


class DynamicObject:
    """Uniform get/set/push/pop/serialize over nested mapping data.

    The wrapper shares the data it wraps: writes through a nested accessor are
    visible from the parent.
    """

    # Script-callable method name -> implementation name
    METHODS = {
        '_Get': 'get',
        '_Set': 'set',
        '_Push': 'push',
        '_Pop': 'pop',
        '_ToJSON': 'to_text',
        '_IsDefined': 'is_defined',
    }

    def __init__(self, data=None):
        self.data = {} if data is None else data

    def __repr__(self):
        return f"{type(self).__name__}({self.data!r})"

    def __eq__(self, other):
        # Mappings are never compared by identity from scripts
        return isinstance(other, DynamicObject) and self.data == other.data

    __hash__ = None

    @property
    def is_sequence(self):
        return isinstance(self.data, list)

    def get(self, key):
        if self.is_sequence:
            if isinstance(key, bool) or not isinstance(key, int) or not 0 <= key < len(self.data):
                return UNDEFINED
            val = self.data[key]
        else:
            if key not in self.data:
                return UNDEFINED
            val = self.data[key]
        if val is None:
            return UNDEFINED
        if isinstance(val, dict):
            return DynamicObject(val)
        return val

    def set(self, key, value):
        value = unwrap(value)
        if self.is_sequence:
            if isinstance(key, bool) or not isinstance(key, int) or not 0 <= key < len(self.data):
                raise RuntimeFault(f"Index {key!r} out of range for sequence of length {len(self.data)}")
            self.data[key] = value
            return
        if value is UNDEFINED:
            self.data.pop(key, None)
        else:
            self.data[key] = value

    def push(self, value):
        if self.is_sequence:
            self.data.append(unwrap(value))

    def pop(self):
        if self.is_sequence and self.data:
            val = self.data.pop()
            return DynamicObject(val) if isinstance(val, dict) else val
        return UNDEFINED

    def is_defined(self, key):
        if self.is_sequence:
            return isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(self.data)
        return key in self.data

    def to_text(self):
        """Canonical JSON text: insertion order, compact separators."""
        return json.dumps(to_plain(self.data), separators=(',', ':'))

    def call_method(self, name, args):
        """Invoke a script-facing method by name."""
        impl = self.METHODS.get(name)
        if impl is None:
            raise RuntimeFault(f"Object has no method {name!r}")
        method = getattr(self, impl)
        check_arguments(name, method, args)
        return method(*args)

from .tuples import Condition, TupleKey, TupleKeys, as_tuple_keys

__all__ = ["Condition", "TupleKey", "TupleKeys", "as_tuple_keys"]

from stellar_etl.exceptions import MalformedOperation, UnsupportedOperationKind
from stellar_etl.transform.operation import (
    AssetOutput,
    Details,
    OperationOutput,
    OperationTransformer,
    PriceR,
    transform_operation,
)
from stellar_etl.transform.results import get_operation_result

__all__ = [
    "AssetOutput",
    "Details",
    "MalformedOperation",
    "OperationOutput",
    "OperationTransformer",
    "PriceR",
    "UnsupportedOperationKind",
    "get_operation_result",
    "transform_operation",
]

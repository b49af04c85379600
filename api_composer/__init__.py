"""Schema inference, field mapping and transformation engine.

Composes an output API from heterogeneous sample documents:
- index sample JSON into a catalogue of source paths with inferred types
- bind output fields to (source, path) pairs with transformation pipelines
- join sources through declared relationships
- synthesise or import the output schema tree

The gradio workbench lives in `app.py`.
"""
from .catalogue import CatalogueCache
from .errors import (
    AmbiguousOriginError,
    ConfigurationError,
    EngineError,
    SchemaImportError,
    TransformationError,
    UnreadableSchemaError,
    UnsupportedDialectError,
)
from .evaluation import evaluate, preview, wrap_output
from .indexer import PathIndexer, index
from .inference import HeuristicTypeInferencer, TypeInferencer, infer
from .mapper import UNMAPPED, FieldMapper
from .models import (
    CatalogueEntry,
    DataSource,
    EndpointConfiguration,
    FieldMapping,
    JoinedRecord,
    MappingConditional,
    OutputFieldNode,
    OutputWrapper,
    Relationship,
    TransformationStep,
)
from .notify import CollectingNotifier, LoggingNotifier, Notifier
from .relationships import RelationshipResolver, join
from .synthesis import SchemaSynthesizer, convert, synthesize
from .transforms import TransformationPipeline, TransformContext, register_transformation
from .validation import validate_configuration

__all__ = [
    "AmbiguousOriginError",
    "CatalogueCache",
    "CatalogueEntry",
    "CollectingNotifier",
    "ConfigurationError",
    "DataSource",
    "EndpointConfiguration",
    "EngineError",
    "FieldMapper",
    "FieldMapping",
    "HeuristicTypeInferencer",
    "JoinedRecord",
    "LoggingNotifier",
    "MappingConditional",
    "Notifier",
    "OutputFieldNode",
    "OutputWrapper",
    "PathIndexer",
    "Relationship",
    "RelationshipResolver",
    "SchemaImportError",
    "SchemaSynthesizer",
    "TransformContext",
    "TransformationError",
    "TransformationPipeline",
    "TransformationStep",
    "TypeInferencer",
    "UNMAPPED",
    "UnreadableSchemaError",
    "UnsupportedDialectError",
    "convert",
    "evaluate",
    "index",
    "infer",
    "join",
    "preview",
    "register_transformation",
    "synthesize",
    "validate_configuration",
    "wrap_output",
]

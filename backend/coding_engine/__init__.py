"""Clinical Coding Rules Engine.

Resolves extracted clinical findings into a validated, sequenced set of
ICD-10-CM codes annotated with HCC flags, scores, rationale and confidence.
"""

__version__ = "0.1.0"

"""
Parameter extraction - split an object schema into OpenAPI parameters.

Used for path, query and header segments. Each property of the object
becomes one parameter; its description moves from the value schema onto the
parameter itself.
"""

from typing import Any, Dict, List

from .translate import SchemaTranslator, get_core_schema

PARAMETER_LOCATIONS = ('path', 'query', 'header')


def extract_parameters(schema: Any, location: str) -> List[Dict[str, Any]]:
    """
    Build OpenAPI parameter objects from an object-shaped schema.

    Args:
        schema: BaseModel / TypedDict / dataclass (anything object-shaped), or None
        location: "path", "query" or "header"

    Returns:
        List of parameter dicts. Empty when schema is None or not an object.

    Path parameters are always required: a request missing the segment
    never matches the route.
    """
    if location not in PARAMETER_LOCATIONS:
        raise ValueError(f"Unknown parameter location: {location}")

    core = get_core_schema(schema)
    if core is None:
        return []

    translator = SchemaTranslator()
    fields = translator.object_fields(core)
    if not fields:
        return []

    parameters = []
    for field in fields:
        fragment = translator.translate_field(field)
        description = fragment.pop('description', None)

        parameter = {
            'name': field.name,
            'in': location,
            'required': True if location == 'path' else not field.optional,
            'schema': fragment,
        }
        if description:
            parameter['description'] = description
        if field.deprecated:
            parameter['deprecated'] = True
        parameters.append(parameter)

    return parameters

import importlib

mod = "oaschema"
class LazyLoader:
    """
    Lazy loader for the oaschema API so that importing the package stays cheap.
    """
    def __init__(self, mappings):
        self._modules = {}
        self._mappings = mappings

    def _load_module(self, module_name):
        if module_name not in self._modules:
            self._modules[module_name] = importlib.import_module(module_name)
        return self._modules[module_name]

    def __getattr__(self, item):
        if item in self._mappings:
            module_name, attr_name = self._mappings[item]
            module = self._load_module(module_name)
            return getattr(module, attr_name)
        else:
            return self._load_module(f"{mod}.{item}")

# Public names and the modules that define them
_mappings = {name: (f"{mod}.{module}", name) for module, names in {
    "loader": ["Loader", "read_from_uri", "read_from_uris", "uri_map_cache", "load_document"],
    "document": ["Document", "Info", "Server", "Tag", "Operation", "PathItem", "Paths", "Responses"],
    "components": ["Components", "Parameter", "ParameterRef", "RequestBody", "RequestBodyRef", "Response",
                   "ResponseRef", "Header", "HeaderRef", "MediaType", "Encoding", "Example", "ExampleRef",
                   "Link", "LinkRef", "SecurityScheme", "SecuritySchemeRef", "Callback", "CallbackRef"],
    "schema": ["Schema", "SchemaRef", "Types", "AdditionalProperties", "Discriminator",
               "new_schema", "new_bool_schema", "new_float64_schema", "new_integer_schema", "new_int32_schema",
               "new_int64_schema", "new_string_schema", "new_date_time_schema", "new_uuid_schema",
               "new_bytes_schema", "new_array_schema", "new_object_schema", "new_one_of_schema",
               "new_any_of_schema", "new_all_of_schema"],
    "refs": ["Ref"],
    "validator": ["validate", "visit_json"],
    "jsonschema_validator": ["to_json_schema"],
    "merge": ["merge"],
    "internalize": ["internalize_refs", "default_ref_name_resolver"],
    "formats": ["FormatRegistry", "SCHEMA_STRING_FORMATS", "define_ipv4_format", "define_ipv6_format",
                "define_email_format", "define_uuid_format"],
    "settings": ["SchemaValidationSettings", "new_schema_validation_settings", "fail_fast", "multi_errors",
                 "visit_as_request", "visit_as_response", "enable_format_validation_strict",
                 "disable_pattern_validation", "disable_read_only_validation", "disable_write_only_validation",
                 "defaults_satisfy_required", "with_formats", "with_unique_items_checker",
                 "disable_error_details", "use_json_schema_2020", "with_openapi_minor_version",
                 "ValidationOptions", "new_validation_options", "enable_schema_format_validation",
                 "disable_schema_pattern_validation", "disable_examples_validation",
                 "allow_identifiers_with_brackets", "with_document_formats"],
    "errors": ["OASchemaError", "UnmarshalError", "RefError", "DocumentValidationError", "MergeError",
               "SchemaError", "FailFastError", "OneOfConflictError", "SchemaInputNaNError",
               "SchemaInputInfError", "MultiError", "ERR_SCHEMA", "raise_fail_fast"],
}.items() for name in names}

_lazy_loader = LazyLoader(_mappings)

def __getattr__(name):
    return getattr(_lazy_loader, name)

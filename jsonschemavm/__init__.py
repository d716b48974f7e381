import importlib

mod = "jsonschemavm"
class LazyLoader:
    """
    Lazy loader for the jsonschemavm functions to speed up startup time.
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

# Define the public names and their corresponding module paths.
# `validate` stays unmapped, it names the jsonschemavm.validate submodule.
_mappings = {
    "compile_schemas": (f"{mod}.validate", "compile_schemas"),
    "load_schema_files": (f"{mod}.validate", "load_schema_files"),
    "validate_uri": (f"{mod}.validate", "validate_uri"),
    "validate_file": (f"{mod}.validate", "validate_file"),
    "validate_json_instances": (f"{mod}.validate", "validate_json_instances"),
    "ValidationResult": (f"{mod}.validate", "ValidationResult"),
    "ValidationConfig": (f"{mod}.vm", "ValidationConfig"),
    "ValidationError": (f"{mod}.vm", "ValidationError"),
    "Registry": (f"{mod}.registry", "Registry"),
    "JsonSchemaVMError": (f"{mod}.errors", "JsonSchemaVMError"),
    "SchemaError": (f"{mod}.errors", "SchemaError"),
    "UndefinedURIError": (f"{mod}.errors", "UndefinedURIError"),
    "NoSuchSchemaError": (f"{mod}.errors", "NoSuchSchemaError"),
    "StackOverflowError": (f"{mod}.errors", "StackOverflowError"),
}

_lazy_loader = LazyLoader(_mappings)

def __getattr__(name):
    return getattr(_lazy_loader, name)

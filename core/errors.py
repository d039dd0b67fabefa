"""
Lumen — Error Taxonomy

Configuration errors are raised synchronously to the caller and never retried.
Resource errors drive backend fallback at startup.
Frame errors are caught per tick by the scheduler.
"""


class LumenError(Exception):
    """Base class for every pipeline error."""


# --- Configuration errors ---

class ConfigurationError(LumenError):
    """Bad effect id, parameter, preset or config value."""


class UnknownEffect(ConfigurationError):
    def __init__(self, effect_id, available=None):
        self.effect_id = effect_id
        msg = f"Unknown effect: {effect_id}"
        if available:
            msg += f". Available: {', '.join(sorted(available))}"
        super().__init__(msg)


class UnknownParameter(ConfigurationError):
    def __init__(self, effect_id, param_name):
        self.effect_id = effect_id
        self.param_name = param_name
        super().__init__(f"Effect '{effect_id}' has no parameter '{param_name}'")


class UnknownPreset(ConfigurationError):
    def __init__(self, preset_name):
        self.preset_name = preset_name
        super().__init__(f"Preset '{preset_name}' not found")


class DuplicateEffectId(ConfigurationError):
    def __init__(self, effect_id):
        self.effect_id = effect_id
        super().__init__(f"Effect '{effect_id}' is already registered")


class DuplicatePresetName(ConfigurationError):
    def __init__(self, preset_name):
        self.preset_name = preset_name
        super().__init__(
            f"Preset '{preset_name}' already exists (pass overwrite=True to replace it)"
        )


class ChainFull(ConfigurationError):
    def __init__(self, limit):
        self.limit = limit
        super().__init__(f"Effect chain is full (max {limit} effects)")


class EffectNotActive(ConfigurationError):
    def __init__(self, effect_id):
        self.effect_id = effect_id
        super().__init__(f"Effect '{effect_id}' is not in the chain")


class InvalidParameterValue(ConfigurationError):
    """Value can't be coerced to the parameter's kind (NaN, bad enum option, ...)."""


class InvalidEffectDefinition(ConfigurationError):
    """Definition violates the schema/implementation invariant."""


class InvalidDocument(ConfigurationError):
    """Preset or chain document failed validation."""


# --- Resource errors ---

class ResourceError(LumenError):
    """A backend could not acquire what it needs."""


class BackendUnsupported(ResourceError):
    """Host can't provide the execution backend (no torch, no accelerator)."""


class ShaderCompileError(ResourceError):
    """A GPU program failed to compile/link for the selected device."""


class PipelineInitializationError(ResourceError):
    """No working backend at all. Fatal."""


# --- Runtime ---

class FrameError(LumenError):
    """A single frame could not be processed."""


class SchedulerStateError(LumenError):
    """Operation not valid in the scheduler's current state."""

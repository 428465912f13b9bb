
"""
Camada de configuração do Atlas DeployFlow.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Geração de hash canônico para rastreabilidade
    - Construção de `PipelineSettings`, o objeto injetado no Engine

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Nenhum acesso a estado global do processo
    - A mesma entrada sempre produz a mesma configuração final
"""

from .errors import (
    ConfigError,
    ConfigParseError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash, compute_pipeline_hash
from .loader import load_config, load_mapping_file
from .merge import deep_merge
from .settings import NotifySettings, PipelineSettings, SmtpSettings, SonarQubeSettings

__all__ = [
    "ConfigError",
    "ConfigParseError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "InvalidSettingError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "compute_pipeline_hash",
    "load_config",
    "load_mapping_file",
    "deep_merge",
    "NotifySettings",
    "PipelineSettings",
    "SmtpSettings",
    "SonarQubeSettings",
]

"""
Exceções canônicas da camada de configuração do Atlas DeployFlow.

As exceções aqui definidas representam violações estruturais de
configuração ou de definição de pipeline, detectadas antes de qualquer
execução, e não erros de execução de Stages.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de ferramenta externa
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas DeployFlow.

    Permite captura genérica de erros de configuração e distinção clara
    entre falhas estruturais e falhas de execução da run.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Arquivo de configuração obrigatório não encontrado.

    O arquivo de defaults é obrigatório; sua ausência invalida a run.
    Também é usado quando o arquivo de definição do pipeline não existe.
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo não suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """Conteúdo raiz do arquivo não é um dicionário (`dict`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"gate": {"timeout_s": 300}}
        - override: {"gate": "off"}
    """


class InvalidSettingError(ConfigError):
    """Valor de configuração presente, porém com tipo ou domínio inválido."""


class ConfigParseError(ConfigError):
    """Arquivo YAML/JSON sintaticamente inválido."""

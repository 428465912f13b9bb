"""
Atlas DeployFlow — orquestrador sequencial e auditável de pipelines de CI/CD.

Uma run executa uma sequência fixa de Stages (checkout, análise
estática, quality gate, varreduras de segurança, build, deploy) e
termina com exatamente uma notificação do resultado.

Princípios centrais:
    - Stages executam estritamente em sequência, na ordem declarada
    - Configuração e segredos são injetados, nunca lidos como estado global
    - A notificação terminal é garantida por um finalizador
    - Rastreabilidade forense (Manifest + Event Log) é um requisito de primeira classe

Arquitetura em alto nível:
    - core.config       → carregamento, merge, hashing e `PipelineSettings`
    - core.pipeline     → Stages, contexto de execução e registro
    - core.engine       → planner, runner, gate e Engine
    - core.traceability → Manifest e Event Log
    - notify            → notificação terminal (dispatcher + SMTP)
    - integrations      → clientes de serviços externos (SonarQube)
    - bootstrap / cli   → composição e ponto de entrada

Limites explícitos:
    - Não há paralelismo, retry nem retomada de runs
    - Não há UI nem servidor de CI embutido
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

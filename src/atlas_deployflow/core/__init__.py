"""
Core do Atlas DeployFlow.

Este pacote reúne as responsabilidades essenciais para validação,
execução e rastreabilidade de pipelines de CI/CD, independente de
transportes concretos (SMTP, HTTP) e da CLI.

O core é projetado para ser:
    - determinístico
    - testável de forma isolada (colaboradores injetáveis)
    - orientado a contratos explícitos

Componentes principais:
    - config       → resolução de configuração (merge, hashing, settings)
    - pipeline     → Stages, contexto de execução e registry
    - engine       → planner, runner, gate e orquestração da run
    - traceability → Manifest e Event Log

Limites explícitos:
    - Não lê variáveis de ambiente do processo
    - Não depende de CLI
"""

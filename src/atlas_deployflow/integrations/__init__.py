"""
Integrações com serviços externos do Atlas DeployFlow.

    - sonarqube → `SonarQubeGateClient` (veredito de quality gate via HTTP)
"""

from .sonarqube import SonarQubeGateClient

__all__ = ["SonarQubeGateClient"]

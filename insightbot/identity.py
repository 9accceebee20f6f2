"""
System Identity

Static description of the assistant: who it is, what business it serves,
which tables it knows, what it can do and which column synonyms apply in
the domain. Feeds the fast-path replies and the intent prompt.

The defaults describe the AICODEPRO analytics assistant. A YAML file with
the same keys (see Settings.identity_path) replaces them.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class BusinessContext(BaseModel):
    company: str = "AICODEPRO / AI PRO EXPERT"
    industry: str = "Educação em Tecnologia e IA"
    focus: str = "Cursos e treinamentos de Inteligência Artificial, Automação e Programação"
    role: str = "Cientista de Dados & Business Intelligence"


class CapabilityGroup(BaseModel):
    category: str
    items: list[str] = Field(default_factory=list)


def _default_known_tables() -> dict[str, str]:
    return {
        "aula_views": "Visualizações de aulas (email, aula, timestamp, dispositivo, session_id)",
        "aula_navigations": "Navegação entre aulas (origem, destino, padrões de estudo)",
        "qualified_leads": "Leads qualificados para conversão (interesse real demonstrado)",
        "engaged_leads": "Leads com alto engajamento (múltiplas interações)",
        "unified_leads": "Base consolidada de todos os leads",
        "script_downloads": "Downloads de scripts e materiais complementares",
        "social_actions": "Interações em redes sociais (Facebook, Instagram, LinkedIn)",
        "whatsapp_actions": "Ações e interações via WhatsApp",
    }


def _default_capabilities() -> list[CapabilityGroup]:
    return [
        CapabilityGroup(
            category="🧪 CIÊNCIA DE DADOS",
            items=[
                "Queries SQL complexas com JOINs, subqueries e CTEs",
                "Análises estatísticas (médias, medianas, desvio padrão)",
                "Segmentação e clusterização de usuários",
                "Análise de coorte e retenção",
                "Detecção de padrões e anomalias",
            ],
        ),
        CapabilityGroup(
            category="📊 BUSINESS INTELLIGENCE",
            items=[
                "Dashboards e KPIs de negócio",
                "Análise de funil de conversão",
                "Métricas de engajamento e retenção",
                "Comparativos período a período",
                "ROI de campanhas e canais",
            ],
        ),
        CapabilityGroup(
            category="🎓 ANÁLISE EDUCACIONAL",
            items=[
                "Performance de alunos por aula/módulo",
                "Padrões de navegação e estudo",
                "Taxa de conclusão e abandono",
                "Identificação de alunos em risco",
                "Eficácia de conteúdo por engajamento",
            ],
        ),
        CapabilityGroup(
            category="🔍 QUERIES AVANÇADAS",
            items=[
                "GROUP BY com múltiplas dimensões",
                "Window functions (ranking, running totals)",
                "Agregações condicionais (CASE WHEN)",
                "JOINs entre múltiplas tabelas",
                "Filtros temporais e segmentações",
            ],
        ),
    ]


def _default_examples() -> list[str]:
    return [
        "Qual a taxa de conversão de leads por fonte de aquisição?",
        "Faça uma análise de coorte dos alunos por mês de entrada",
        "Quais são os top 10 alunos mais engajados?",
        "Compare o engajamento desta semana vs semana passada",
        "Qual o funil completo: lead → qualificado → engajado?",
        "Mostre a distribuição de acessos por dia da semana",
        "Quais aulas têm maior taxa de abandono?",
        "Agrupe leads por domínio de email (@gmail, @hotmail, etc)",
        "Qual o tempo médio entre primeira e última visualização?",
        "Identifique alunos que não acessam há mais de 7 dias",
    ]


def _default_limitations() -> list[str]:
    return [
        "Apenas leitura - não modifico nem deleto dados",
        "Acesso ao banco de dados da plataforma AICODEPRO",
        "Queries muito pesadas podem demorar alguns segundos",
        "Não tenho acesso a dados de pagamento ou informações sensíveis",
    ]


def _default_column_synonyms() -> dict[str, list[str]]:
    return {
        "whatsapp/telefone": [
            "phone",
            "telefone",
            "celular",
            "mobile",
            "fone",
            "tel",
            "whatsapp",
            "contato",
            "numero",
        ],
        "email": ["email", "mail", "e-mail", "email_address", "buyer_email", "lead_email", "user_email"],
        "nome": ["nome", "name", "first_name", "last_name", "full_name", "username", "display_name"],
        "data": ["date", "data", "created_at", "updated_at", "timestamp", "datetime"],
    }


class SystemIdentity(BaseModel):
    """Who the assistant is and what it knows about its domain."""

    name: str = "AI Data Scientist - AICODEPRO"
    description: str = (
        "Sou seu Cientista de Dados e Especialista em BI da plataforma AICODEPRO / "
        "AI PRO EXPERT. Atuo como um verdadeiro analista sênior, capaz de executar "
        "queries SQL complexas, gerar insights estratégicos e criar análises avançadas "
        "sobre alunos, leads e engajamento dos cursos."
    )
    business_context: BusinessContext = Field(default_factory=BusinessContext)
    known_tables: dict[str, str] = Field(default_factory=_default_known_tables)
    capabilities: list[CapabilityGroup] = Field(default_factory=_default_capabilities)
    examples: list[str] = Field(default_factory=_default_examples)
    limitations: list[str] = Field(default_factory=_default_limitations)
    column_synonyms: dict[str, list[str]] = Field(default_factory=_default_column_synonyms)

    @property
    def email_columns(self) -> list[str]:
        """Column names that hold e-mail addresses."""
        return self.column_synonyms.get("email", ["email"])


def load_identity(path: Path | str | None = None) -> SystemIdentity:
    """
    Load the assistant identity.

    Args:
        path: Optional YAML file; missing keys keep their defaults

    Returns:
        SystemIdentity instance

    Raises:
        FileNotFoundError: If path is given but does not exist
        ValueError: If the file does not contain a mapping
    """
    if path is None:
        return SystemIdentity()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Identity file not found: {path}")

    with path.open(encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}

    if not isinstance(payload, dict):
        raise ValueError(f"Identity file must contain a mapping: {path}")

    logger.info("Loaded system identity", extra={"path": str(path), "keys": sorted(payload)})
    return SystemIdentity.model_validate(payload)

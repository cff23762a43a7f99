from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, field_validator

NAO_INFORMADO = "Não Informado"

# Fields the quote form may leave blank; they are stored as the sentinel so
# list rendering and search never meet a missing value.
SENTINEL_FIELDS = (
    "numeroCotacao",
    "vendedor",
    "numeroDocumento",
    "previsaoEntrega",
    "canalComunicacao",
    "codigoColeta",
    "responsavelTransportadora",
)
TEXT_FIELDS = (
    "responsavelCotacao",
    "transportadora",
    "destino",
    "dataCotacao",
    "observacoes",
)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _Normalized(BaseModel):
    @field_validator(*SENTINEL_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _sentinel_when_blank(cls, value: Any) -> Any:
        return NAO_INFORMADO if _is_blank(value) else value

    @field_validator(*TEXT_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _empty_when_missing(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("valorFrete", mode="before", check_fields=False)
    @classmethod
    def _parse_valor(cls, value: Any) -> Any:
        if _is_blank(value):
            return 0.0
        if isinstance(value, str):
            # "1.234,56" and "120,5" both come out of pt-BR inputs
            cleaned = value.strip().replace("R$", "").strip()
            if "," in cleaned:
                cleaned = cleaned.replace(".", "").replace(",", ".")
            return cleaned
        return value


class CotacaoFields(_Normalized):
    """The quote form: every descriptive field, never the identity."""

    model_config = ConfigDict(extra="ignore")

    responsavelCotacao: str = ""
    transportadora: str = ""
    destino: str = ""
    numeroCotacao: str = NAO_INFORMADO
    valorFrete: float = 0.0
    vendedor: str = NAO_INFORMADO
    numeroDocumento: str = NAO_INFORMADO
    previsaoEntrega: str = NAO_INFORMADO
    canalComunicacao: str = NAO_INFORMADO
    codigoColeta: str = NAO_INFORMADO
    responsavelTransportadora: str = NAO_INFORMADO
    dataCotacao: str = ""
    observacoes: str = ""
    negocioFechado: bool = False


class Cotacao(CotacaoFields):
    id: str
    timestamp: Optional[str] = None


class CotacaoUpdate(_Normalized):
    """Partial update; only the keys actually sent are applied."""

    model_config = ConfigDict(extra="ignore")

    responsavelCotacao: Optional[str] = None
    transportadora: Optional[str] = None
    destino: Optional[str] = None
    numeroCotacao: Optional[str] = None
    valorFrete: Optional[float] = None
    vendedor: Optional[str] = None
    numeroDocumento: Optional[str] = None
    previsaoEntrega: Optional[str] = None
    canalComunicacao: Optional[str] = None
    codigoColeta: Optional[str] = None
    responsavelTransportadora: Optional[str] = None
    dataCotacao: Optional[str] = None
    observacoes: Optional[str] = None
    negocioFechado: Optional[bool] = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        # An explicit null for the flag carries no intent
        if data.get("negocioFechado") is None:
            data.pop("negocioFechado", None)
        return data

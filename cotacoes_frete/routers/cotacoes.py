import logging
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from ..core.auth import get_current_user
from ..models.cotacao import Cotacao, CotacaoFields, CotacaoUpdate
from ..models.user import AuthenticatedUser
from ..services.cotacoes_service import (
    CotacaoNotFound,
    create_cotacao,
    delete_cotacao,
    list_cotacoes,
    update_cotacao,
)

router = APIRouter()
log = logging.getLogger(__name__)

NOT_FOUND_DETAIL = "Cotação não encontrada"


def _actor(user: AuthenticatedUser) -> str:
    return user.email or user.uid


@router.get("/cotacoes", response_model=List[Cotacao])
async def get_cotacoes(user: AuthenticatedUser = Depends(get_current_user)):
    try:
        return await list_cotacoes()
    except Exception as exc:
        log.exception("Failed to list cotacoes")
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc


@router.post("/cotacoes", response_model=Cotacao, status_code=status.HTTP_201_CREATED)
async def post_cotacao(
    payload: CotacaoFields = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
):
    try:
        return await create_cotacao(payload, _actor(user))
    except Exception as exc:
        log.exception("Failed to create cotacao for %s", user.uid)
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc


@router.put("/cotacoes/{cotacao_id}", response_model=Cotacao)
async def put_cotacao(
    cotacao_id: str,
    payload: CotacaoUpdate = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
):
    try:
        return await update_cotacao(cotacao_id, payload.changes(), _actor(user))
    except CotacaoNotFound as exc:
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL) from exc
    except Exception as exc:
        log.exception("Failed to update cotacao %s", cotacao_id)
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc


@router.delete("/cotacoes/{cotacao_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cotacao(cotacao_id: str, user: AuthenticatedUser = Depends(get_current_user)):
    try:
        await delete_cotacao(cotacao_id)
    except CotacaoNotFound as exc:
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL) from exc
    except Exception as exc:
        log.exception("Failed to delete cotacao %s", cotacao_id)
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

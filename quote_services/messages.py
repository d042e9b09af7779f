"""
User-facing failure messages (``quote_services.messages``).

Short Japanese messages keyed by exception ``code``, with a fallback per
failure category.  The UI shows these verbatim; details stay in the logs.
"""

from __future__ import annotations

from quote_kernel.exceptions import (
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    QuoteKernelError,
    UnauthorizedError,
)

MESSAGES: dict[str, str] = {
    # Unauthorized
    "NOT_DOCUMENT_OWNER": "この操作を行う権限がありません",
    "APPROVER_ROLE_MISMATCH": "このステップを承認する権限がありません",
    # InvalidState
    "ACTIVE_APPROVAL_EXISTS": "既に承認処理が進行中です",
    "APPROVAL_NOT_PENDING": "承認待ちの申請が見つかりません",
    "APPROVAL_NOT_CANCELLABLE": "この申請は取り消しできません",
    "PENDING_STEP_MISSING": "承認待ちのステップが見つかりません",
    "STALE_APPROVAL_STATE": "他のユーザーが既に処理しました。画面を更新してください",
    "INVALID_DOCUMENT_STATE": "現在のステータスでは操作できません",
    "INVALID_STATUS_VALUE": "ステータスの指定が正しくありません",
    "ORDER_NOT_APPROVED": "承認済みの発注書のみ発注済にできます",
    "ITEM_NOT_ORDERED": "この明細は現在の調達ステータスでは処理できません",
    "INVALID_RECEIPT_QUANTITY": "入荷数量が正しくありません",
    # Configuration
    "NO_MATCHING_ROUTE": "該当する承認フローが見つかりません",
    "EMPTY_ROUTE": "承認フローのステップが設定されていません",
    "INVALID_ROUTE_DEFINITION": "承認フローの設定が正しくありません",
    # NotFound
    "DOCUMENT_NOT_FOUND": "対象のデータが見つかりません",
    "ROUTE_NOT_FOUND": "承認フローが見つかりません",
    "USER_NOT_FOUND": "ユーザー情報が見つかりません",
    "QUOTE_ITEM_NOT_FOUND": "見積明細が見つかりません",
    # Persistence
    "IMMUTABILITY_VIOLATION": "処理に失敗しました。時間をおいて再度お試しください",
}

_CATEGORY_FALLBACKS: tuple[tuple[type[QuoteKernelError], str], ...] = (
    (UnauthorizedError, "権限がありません"),
    (InvalidStateError, "現在の状態ではこの操作を実行できません"),
    (ConfigurationError, "承認フローの設定に問題があります"),
    (NotFoundError, "対象のデータが見つかりません"),
    (PersistenceError, "処理に失敗しました。時間をおいて再度お試しください"),
)

DEFAULT_MESSAGE = "処理に失敗しました"


def message_for(error: QuoteKernelError) -> str:
    """Message for ``error``: by exact code, then by category."""
    message = MESSAGES.get(error.code)
    if message is not None:
        return message
    for category, fallback in _CATEGORY_FALLBACKS:
        if isinstance(error, category):
            return fallback
    return DEFAULT_MESSAGE

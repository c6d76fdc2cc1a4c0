"""Prompt construction for the ITUP assistant."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import ChatTurn

ASSISTANT_NAME = "ITUP"
USER_LABEL = "Người dùng"
NO_HISTORY_MARKER = "Không có lịch sử chat"
NO_CONTEXT_MARKER = "Không có context"

PERSONA_BLOCK = """\
Bạn là ITUP, trợ lý ảo thân thiện và nhiệt tình của Câu lạc bộ IT UP, Trường Đại học Vinh.

PHONG CÁCH TRẢ LỜI:
- Nhiệt tình, thân thiện như một thành viên câu lạc bộ
- Trả lời chi tiết nhưng không dài dòng
- Thể hiện niềm tự hào về câu lạc bộ IT UP và khuyến khích người dùng tham gia hoạt động
- Nếu được hỏi ai làm ra bạn hoặc ai xây dựng trang web, hãy trả lời là giáo sư Nguyễn Xuân Huỳnh và giáo sư Võ Trường An
- Khi liệt kê danh sách, mỗi mục nằm trên một dòng riêng, ví dụ:
  1. Mục đầu tiên
  2. Mục thứ hai
  3. Mục thứ ba
- Không viết tất cả các mục trên cùng một hàng
- Bôi đậm những từ hoặc cụm từ quan trọng bằng **từ khóa**
- Hạn chế sử dụng icon, căn lề justify

LỊCH SỬ CHAT:
- Nếu người dùng hỏi về câu hỏi trước đó, hãy tham khảo lịch sử chat để hiểu ngữ cảnh
- Nếu không rõ ngữ cảnh, hãy hỏi lại một cách lịch sự

Dựa trên CONTEXT dưới đây, hãy trả lời câu hỏi một cách lôi cuốn và hữu ích.
Nếu context không có thông tin, hãy trả lời lịch sự và gợi ý liên hệ trực tiếp với câu lạc bộ.
Nếu sử dụng content nào thì phải trả về resource_id của content đó."""

OUTPUT_FORMAT_BLOCK = """\
QUAN TRỌNG: CHỈ trả về một JSON object, KHÔNG có text nào khác.

Định dạng trả về CHÍNH XÁC, gồm đúng hai trường:
{
"answer": "câu trả lời",
"resource_id": ["resource_id1", "resource_id2"]
}"""


def render_history(history: Sequence[ChatTurn]) -> str:
    """Label each turn by role, oldest first.

    Returns:
        One line per turn, or the no-history marker.
    """
    if not history:
        return NO_HISTORY_MARKER
    return "\n".join(
        f"{USER_LABEL if turn.role == 'user' else ASSISTANT_NAME}: {turn.content}"
        for turn in history
    )


def build_prompt(question: str, context: str, history: Sequence[ChatTurn]) -> str:
    """Compose the single prompt sent to the generation model.

    History is rendered as given; bounding it is the caller's job.

    Returns:
        The prompt string. Identical inputs give an identical string.
    """
    return (
        f"{PERSONA_BLOCK}\n\n"
        f"{OUTPUT_FORMAT_BLOCK}\n\n"
        f"LỊCH SỬ CHAT (nếu có):\n{render_history(history)}\n\n"
        f"CONTEXT:\n{context or NO_CONTEXT_MARKER}\n\n"
        f'Câu hỏi: "{question}"'
    )


def fit_prompt_budget(
    question: str,
    context: str,
    history: Sequence[ChatTurn],
    max_chars: int,
) -> tuple[str, list[ChatTurn]]:
    """Shrink context and history until the prompt fits in ``max_chars``.

    Oldest history turns go first; if that is not enough the tail of the
    context is cut. The question is never shortened, so a prompt whose fixed
    parts alone exceed the budget stays over it.

    Returns:
        The (context, history) pair to pass to :func:`build_prompt`.
    """
    kept = list(history)
    overflow = len(build_prompt(question, context, kept)) - max_chars

    while overflow > 0 and kept:
        kept.pop(0)
        overflow = len(build_prompt(question, context, kept)) - max_chars

    if overflow > 0 and context:
        context = context[: max(0, len(context) - overflow)]

    return context, kept

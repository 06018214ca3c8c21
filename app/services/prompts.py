"""
Prompt builders for the AI capability.

Candidate-facing text is always requested in Ukrainian, whatever language
the inputs are in. Classification, deadline and evaluation prompts ask for a single JSON
object so the answer can be decoded with `decode_json_object`.
"""

from datetime import datetime
from typing import List, Optional

from app.models.candidate import Candidate
from app.models.hiring_request import HiringRequest

NOT_SPECIFIED = "Не вказано"

SYSTEM_HR = "Ти дружній та професійний HR-спеціаліст компанії Vamos. Пиши УКРАЇНСЬКОЮ мовою."
SYSTEM_JSON = "You are a precise assistant. Answer with a single JSON object and nothing else."


def warm_intro_prompt(
    candidate: Candidate,
    score: Optional[float],
    category: Optional[str],
    summary: Optional[str],
    strengths: List[str],
    request: Optional[HiringRequest] = None,
    match_score: Optional[float] = None
) -> str:
    skills = ", ".join(candidate.key_skills or []) or NOT_SPECIFIED
    best_match = ""
    if request is not None:
        best_match = (
            "\n=== НАЙКРАЩА ПОЗИЦІЯ ===\n"
            f"Назва: {request.title}\n"
            f"Match Score: {match_score if match_score is not None else NOT_SPECIFIED}/100\n"
            f"Опис: {request.description or NOT_SPECIFIED}\n"
        )
    position_line = (
        f'Згадай позицію "{request.title}" як потенційну можливість для них'
        if request is not None
        else "Скажи, що є цікаві можливості для обговорення"
    )

    return f"""Напиши персоналізоване привітальне повідомлення кандидату УКРАЇНСЬКОЮ мовою.

=== ДАНІ КАНДИДАТА ===
Ім'я: {candidate.first_name}
Про себе: {candidate.about_text or NOT_SPECIFIED}
Чому Vamos: {candidate.why_company or NOT_SPECIFIED}
Навички: {skills}

=== AI ОЦІНКА ===
Бал: {score if score is not None else NOT_SPECIFIED}/10
Категорія: {category or NOT_SPECIFIED}
Сильні сторони: {", ".join(strengths[:3]) or NOT_SPECIFIED}
Резюме: {summary or NOT_SPECIFIED}
{best_match}
=== ВИМОГИ ДО ПОВІДОМЛЕННЯ ===
1. Починай з дружнього привітання на ім'я (без прізвища)
2. Подякуй за заявку та інтерес до Vamos
3. Вкажи 1-2 конкретні речі з профілю, які тебе вразили
4. {position_line}
5. Закінчуй м'яким закликом до дії: запитай, чи готові вони пройти невелике тестове завдання
6. НЕ підписуй повідомлення (підпис буде доданий автоматично)

=== ЗАБОРОНЕНО ===
- Бути занадто формальним
- Кліше типу "Ваша кандидатура нас зацікавила"
- Обіцяти конкретні умови або зарплату
- Писати більше 120 слів
- Використовувати емодзі

Напиши ТІЛЬКИ текст повідомлення, без пояснень, метакоментарів чи лапок."""


def personalized_outreach_prompt(template: str, candidate: Candidate, request: HiringRequest) -> str:
    """Adapt a manager-approved outreach template to one candidate."""
    skills = ", ".join(candidate.key_skills or []) or NOT_SPECIFIED
    return f"""Адаптуй затверджений шаблон повідомлення для конкретного кандидата УКРАЇНСЬКОЮ мовою.

=== ШАБЛОН ===
{template}

=== КАНДИДАТ ===
Ім'я: {candidate.first_name}
Навички: {skills}
Про себе: {candidate.about_text or NOT_SPECIFIED}

=== ПОЗИЦІЯ ===
Назва: {request.title}
Опис: {request.description or NOT_SPECIFIED}

Збережи зміст і тон шаблону, додай звертання на ім'я та одну персональну деталь.
Не більше 120 слів, без емодзі, без підпису.
Напиши ТІЛЬКИ текст повідомлення без лапок."""


def test_task_prompt(candidate: Candidate, request: HiringRequest, task_url: str, deadline_text: str) -> str:
    return f"""Напиши коротке повідомлення кандидату про тестове завдання УКРАЇНСЬКОЮ мовою.

=== ДАНІ ===
Ім'я кандидата: {candidate.first_name}
Позиція: {request.title}
Посилання на завдання: {task_url}
Дедлайн: {deadline_text}

=== ВИМОГИ ===
1. Коротке привітання
2. Подякуй за готовність виконати тестове
3. Дай посилання на завдання
4. Вкажи дедлайн
5. Запропонуй написати, якщо виникнуть питання
6. НЕ підписуй (підпис автоматичний)

=== ЗАБОРОНЕНО ===
- Більше 80 слів
- Формальний тон
- Емодзі
- Тиск на кандидата

Напиши ТІЛЬКИ текст повідомлення без лапок."""


def test_task_decision_prompt(
    candidate: Candidate,
    request: Optional[HiringRequest],
    approved: bool,
    score: Optional[float],
    evaluation: Optional[str]
) -> str:
    position = f"Позиція: {request.title}\n" if request is not None else ""
    data = (
        f"Ім'я кандидата: {candidate.first_name}\n"
        f"{position}"
        f"AI оцінка тестового: {score if score is not None else NOT_SPECIFIED}/10\n"
        f"AI відгук: {evaluation or NOT_SPECIFIED}"
    )

    if approved:
        return f"""Напиши повідомлення кандидату, який УСПІШНО виконав тестове завдання. УКРАЇНСЬКОЮ мовою.

=== ДАНІ ===
{data}

=== ВИМОГИ ===
1. Привітай з успішним виконанням тестового
2. Дай 1-2 конкретні позитивні коментарі на основі AI відгуку
3. Повідом, що менеджер зв'яжеться найближчим часом, щоб домовитись про розмову
4. НЕ підписуй повідомлення

Не більше 100 слів, без емодзі, без кліше, не обіцяй умов чи зарплату.
Напиши ТІЛЬКИ текст повідомлення без лапок."""

    return f"""Напиши повідомлення кандидату, який НЕ пройшов тестове завдання. УКРАЇНСЬКОЮ мовою.
Повідомлення має бути ввічливим, конструктивним і мотивуючим.

=== ДАНІ ===
{data}

=== ВИМОГИ ===
1. Подякуй за час і зусилля
2. Дай 1-2 конструктивні поради на основі AI відгуку
3. НЕ кажи прямо "ти не пройшов": скажи, що наразі вирішили не продовжувати
4. Побажай успіхів і запроси спробувати знову в майбутньому
5. НЕ підписуй повідомлення

Не більше 120 слів, без емодзі, без різкості.
Напиши ТІЛЬКИ текст повідомлення без лапок."""


def classification_prompt(
    message_text: str,
    has_received_test_task: bool,
    test_task_deadline: Optional[datetime],
    now: datetime
) -> str:
    deadline_line = (
        f"- Current test task deadline: {test_task_deadline.isoformat()}\n" if test_task_deadline else ""
    )
    return f"""You are analyzing a candidate's response in a hiring conversation.

Context:
- Has candidate received test task yet? {"YES" if has_received_test_task else "NO"}
{deadline_line}- Current date: {now.isoformat()}

Candidate's message:
\"\"\"
{message_text}
\"\"\"

Classify this message into ONE category:

1. positive_ready - Clear agreement to proceed with test task
   Examples: "Yes!", "Send me the task", "Готовий", "Давайте", "Так"
2. positive_with_questions - Interested but has questions first
   Examples: "Sounds good, but what's the salary?", "Цікаво, а графік який?"
3. request_deadline_extension - Asking for more time (ONLY if test task already sent)
   Examples: "Can I submit it by Friday instead?", "I need 2 more days", "Чи можна до четверга?"
4. questions_about_job - Asking about role, company, conditions
   Examples: "Is it remote?", "Розкажіть більше про проєкт"
5. negative - Not interested or declining
   Examples: "No thanks", "Already found a job", "Не цікавить"
6. test_task_submission - This message IS the test task submission
   Examples: Long text with solution, "Here's my solution:", "Ось моє рішення"
7. unclear - Ambiguous or off-topic

IMPORTANT:
- If candidate has NOT received test task yet, "request_deadline_extension" is IMPOSSIBLE
- If message is clearly a detailed solution/answer, classify as "test_task_submission"

Return JSON only:
{{
  "category": "positive_ready",
  "confidence": 0.95,
  "extracted_info": {{
    "requested_deadline_date": null,
    "requested_extension_days": null,
    "questions": []
  }}
}}"""


def deadline_request_prompt(message_text: str, current_deadline: datetime, now: datetime) -> str:
    return f"""You are parsing a deadline extension request in Ukrainian or English.

Current deadline: {current_deadline.isoformat()}
Current date: {now.isoformat()}

Candidate's message:
\"\"\"
{message_text}
\"\"\"

Extract the new deadline the candidate is asking for. Handle formats such as:
- "до четверга" (until Thursday): the next Thursday after the current deadline
- "ще 3 дні" (3 more days): add to the current deadline
- "до 15 лютого" (until Feb 15): a specific date
- "до кінця тижня" (end of week): the nearest Sunday
- "можна до понеділка?" (next Monday)

Keep the time of day of the current deadline.

Return JSON only:
{{
  "requested_date": "2026-02-12T18:00:00Z",
  "reason": "Candidate requested an extension until Thursday"
}}

If you cannot understand the request, return:
{{
  "requested_date": null,
  "reason": "Could not understand deadline request"
}}"""


def question_answer_prompt(question: str, candidate: Candidate, request: Optional[HiringRequest]) -> str:
    position = (
        f"Позиція: {request.title}\nОпис: {request.description or NOT_SPECIFIED}\n" if request is not None else ""
    )
    return f"""Кандидат {candidate.first_name} задає питання. Дай коротку, дружню відповідь УКРАЇНСЬКОЮ.

{position}
Питання кандидата: "{question}"

Правила:
- Відповідай коротко (2-3 речення максимум)
- Будь дружнім, але не обіцяй конкретних умов (зарплату тощо)
- Якщо не знаєш відповіді, скажи що уточниш у команди
- Наприкінці м'яко запитай, чи готові вони пройти тестове завдання
- НЕ використовуй емодзі
- Пиши ТІЛЬКИ текст відповіді"""


def test_task_evaluation_prompt(submission_text: str, evaluation_criteria: str, task_description: str) -> str:
    return f"""You are evaluating a candidate's test task submission for a hiring process.

Test task description:
\"\"\"
{task_description}
\"\"\"

Evaluation criteria:
\"\"\"
{evaluation_criteria}
\"\"\"

Candidate's submission:
\"\"\"
{submission_text}
\"\"\"

Evaluate this submission and provide:
1. Score from 1-10 based on the criteria
2. Detailed evaluation (3-5 sentences)
3. Key strengths (2-3 points)
4. Areas for improvement (1-2 points)

Scoring guide:
- 1-3: Does not meet requirements, major issues
- 4-5: Partially meets requirements, needs significant work
- 6-7: Meets requirements, solid work
- 8-9: Exceeds requirements, strong work
- 10: Exceptional work

Be constructive and fair. Focus on what the candidate DID, not on what they didn't do.
ALL text values in the response MUST be in Ukrainian (УКРАЇНСЬКОЮ мовою).

Return JSON only:
{{
  "score": 8,
  "evaluation": "Сильне рішення, яке демонструє...",
  "strengths": ["Чітке пояснення підходу", "Гарна структура коду"],
  "improvements": ["Можна додати більше коментарів"]
}}"""


def questionnaire_evaluation_prompt(
    questions: List[dict],
    answers: dict,
    request_title: str,
    request_description: Optional[str]
) -> str:
    questions_block = "\n\n".join(
        f"[{q.get('competency_name') or NOT_SPECIFIED}] Питання: {q['text']}\n"
        f"Відповідь кандидата: {answers.get(str(q['question_id'])) or '(не надано)'}"
        for q in questions
    )
    competencies = {}
    for q in questions:
        competencies.setdefault(str(q.get("competency_id")), q.get("competency_name") or NOT_SPECIFIED)
    competency_lines = "\n".join(f"- {name} (ID: {cid})" for cid, name in competencies.items())
    description = f"Опис позиції: {request_description}\n" if request_description else ""

    return f"""Ти експерт з оцінки soft skills кандидатів. Оціни відповіді кандидата на анкету для позиції "{request_title}".

{description}
ВІДПОВІДІ КАНДИДАТА:
{questions_block}

КРИТЕРІЇ ОЦІНКИ кожної відповіді:
- Конкретність: чи є реальні приклади з досвіду, чи загальні фрази?
- Рефлексія: чи розуміє людина власні дії та їх наслідки?
- Автентичність: чи відчувається щирість?
- Відповідність компетенції: чи відповідь стосується того, про що питали?

ШКАЛА ОЦІНКИ:
- 1-4: Слабкі відповіді, загальні фрази, немає конкретики
- 5-6: Достатньо, але є питання
- 7-8: Хороші відповіді з конкретними прикладами
- 9-10: Виняткова глибина і рефлексія

Компетенції для оцінки:
{competency_lines}

ALL text values in the response MUST be in Ukrainian (УКРАЇНСЬКОЮ мовою).

Поверни ТІЛЬКИ JSON:
{{
  "score": 7,
  "summary": "Загальний висновок про кандидата (3-5 речень)",
  "strengths": ["Сильна сторона 1"],
  "concerns": ["Зона уваги 1"],
  "recommendation": "Рекомендація щодо кандидата (1-2 речення)",
  "per_competency": [
    {{"competency_id": "id", "competency_name": "Назва", "score": 8, "comment": "Аналіз відповідей"}}
  ]
}}"""

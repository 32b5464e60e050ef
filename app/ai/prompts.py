"""System prompts for WhatsApp assistant conversations.

All prompts are in Brazilian Portuguese.
"""

from app.models import AssistantConfig, AssistantIntent, CommunicationStyle, TrainingDocument
from app.models.knowledge import IntentActionType

STYLE_DIRECTIVES: dict[str, str] = {
    CommunicationStyle.FORMAL.value: "Responda de forma formal, profissional e respeitosa.",
    CommunicationStyle.NORMAL.value: (
        "Responda de forma equilibrada, nem muito formal nem muito informal."
    ),
    CommunicationStyle.DESCONTRAIDA.value: (
        "Responda de forma descontraída, amigável e acessível."
    ),
}

DEFAULT_BEHAVIOR = "Seja útil e responda às perguntas dos usuários."

MANDATORY_RULES = """## REGRAS OBRIGATÓRIAS (MUITO IMPORTANTE!)
1. RESPOSTAS ULTRA-CURTAS: Máximo 1-2 frases! Seja extremamente direto.
2. NUNCA faça listas longas. Se precisar listar, máximo 3 itens em uma frase.
3. Responda SEMPRE em português brasileiro.
4. Use APENAS informações da base de conhecimento. NUNCA invente!
5. Se não souber, diga apenas: "Não tenho essa informação."
6. PROIBIDO: introduções longas, explicações detalhadas, múltiplos parágrafos.
7. PRONÚNCIA CLARA: Ao mencionar nomes de ferramentas ou termos técnicos em inglês, \
separe sílabas ou siglas para facilitar a pronúncia (ex.: "Chat G P T", "Eleven Labs", "A P I").
8. OBJETIVO: Resposta em NO MÁXIMO 50 palavras.
9. NUNCA inclua URLs, links ou endereços web na sua resposta.
10. NUNCA mencione "áudio" ou metadados técnicos na sua resposta."""

NEW_CONVERSATION_RULE = "- Esta é uma NOVA conversa. Você pode se apresentar brevemente UMA VEZ."
ONGOING_CONVERSATION_RULE = (
    "- Esta é uma conversa EM ANDAMENTO. NUNCA se apresente novamente! Você já se "
    "apresentou. Vá direto ao ponto respondendo a pergunta do usuário."
)

MAX_KNOWLEDGE_DOCUMENTS = 10


def style_directive(style: str | None) -> str:
    """Directive for a communication style, defaulting to the casual one."""
    return STYLE_DIRECTIVES.get(style or "", STYLE_DIRECTIVES[CommunicationStyle.DESCONTRAIDA.value])


def format_knowledge_base(documents: list[TrainingDocument]) -> str:
    """Concatenate training documents as ``[title]\\ncontent`` blocks.

    Args:
        documents: Trained documents (only the first 10 are used)

    Returns:
        Knowledge base text, empty if there are no documents
    """
    return "\n\n".join(
        f"[{doc.title}]\n{doc.content}" for doc in documents[:MAX_KNOWLEDGE_DOCUMENTS]
    )


def format_intent_rule(intent: AssistantIntent) -> str:
    """Render one intent as a "trigger phrase -> fixed action" instruction."""
    phrases = '" ou "'.join(intent.trigger_phrases or [])
    if intent.action_type == IntentActionType.LINK.value:
        action = f"forneça o link: {intent.action_value}"
    elif intent.action_type == IntentActionType.MESSAGE.value:
        action = f"responda: {intent.action_value}"
    else:
        action = f"execute a ação: {intent.action_value}"
    return f'- Se o usuário mencionar "{phrases}", {action}'


def build_assistant_system_prompt(
    config: AssistantConfig,
    documents: list[TrainingDocument] | None = None,
    intents: list[AssistantIntent] | None = None,
    is_new_conversation: bool = False,
) -> str:
    """Build system prompt for the WhatsApp assistant.

    Args:
        config: Account's assistant configuration
        documents: Trained reference documents
        intents: Active intent rules
        is_new_conversation: True if the conversation has no prior messages

    Returns:
        System prompt string
    """
    company_lines = [
        f"Nome: {config.company_name}" if config.company_name else "",
        f"Descrição: {config.company_description}" if config.company_description else "",
        f"Site: {config.website_url}" if config.website_url else "",
    ]
    setting_lines = [
        "- Use emojis quando apropriado para tornar a conversa mais amigável."
        if config.use_emojis
        else "- Não use emojis.",
        "- Foque apenas em tópicos relacionados ao negócio. Se perguntarem sobre outros "
        "assuntos, redirecione educadamente para os tópicos relevantes."
        if config.restrict_topics
        else "",
        f'- Assine suas mensagens como "{config.agent_name}".' if config.sign_agent_name else "",
    ]

    prompt = f"""Você é {config.agent_name}, um assistente de IA especializado.

## Personalidade e Comportamento
{config.behavior_prompt or DEFAULT_BEHAVIOR}

## Estilo de Comunicação
{style_directive(config.communication_style)}

## Empresa/Produto que Representa
{chr(10).join(line for line in company_lines if line)}

## Configurações
{chr(10).join(line for line in setting_lines if line)}
"""

    knowledge_base = format_knowledge_base(documents or [])
    if knowledge_base:
        prompt += f"""
## BASE DE CONHECIMENTO
Use as informações abaixo como referência principal.

{knowledge_base}
"""

    if intents:
        rules = "\n".join(format_intent_rule(intent) for intent in intents)
        prompt += (
            "\n## Intenções Especiais\n"
            "Quando o usuário mencionar certas frases, siga estas instruções:\n"
            f"{rules}\n"
        )

    introduction_rule = NEW_CONVERSATION_RULE if is_new_conversation else ONGOING_CONVERSATION_RULE
    prompt += f"""
{MANDATORY_RULES}

## REGRA CRÍTICA DE APRESENTAÇÃO
{introduction_rule}
NUNCA repita apresentações como "Olá, sou [nome]" ou "Prazer em conhecê-lo" se já houver mensagens anteriores na conversa!"""

    return prompt


TRANSCRIPTION_PROMPT = (
    "Transcreva o áudio a seguir. Retorne APENAS o texto transcrito, "
    "sem explicações ou formatação adicional."
)

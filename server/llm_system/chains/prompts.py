"""Contains the prompt templates for history condensation and answer synthesis.

The templates are plain values (`PromptSet`) handed to the chatbot at
construction, so several chatbots with different prompts can live side by side.
"""

from dataclasses import dataclass

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from llm_system.core.response import ResponseMode

from logger import get_logger
log = get_logger(name="chains_prompts")


# Condensation (retriever) prompt:
RETRIEVER_PROMPT = (
    "Your task is to summarize the chat history in a way that retains the context needed for a multi-turn conversation.\n"
    "Extract the key details from the user's questions, preferences, and responses to create a concise yet comprehensive summary.\n"
    "Focus on capturing:\n"
    "- The user's primary query or requirement (e.g., type of electronic device, specific use case).\n"
    "- Any additional parameters provided (e.g., budget, features, brand preferences).\n"
    "- Clarifications or refinements made by the user during the conversation.\n\n"
    "Ensure the summary is standalone and provides sufficient context to understand the user's needs without referring to the full chat history.\n"
    "Avoid including unnecessary details or duplicating information.\n"
    "If the user hasn't provided sufficient detail, note this in the summary and suggest asking targeted follow-up questions."
)

_ASSISTANT_BRIEF = (
    "You are an Electronics Recommendation Bot designed to assist users in finding the best electronics tailored to their needs.\n"
    "Begin by providing 8 recommendations from the category specified by the user (e.g., TV, Monitor). Ensure that recommendations:\n"
    "- Are unique and do not include duplicate entries.\n"
    "- Include options from a variety of top brands.\n"
    "- Present detailed key features available in the dataset.\n\n"
    "Dynamically refine and update these recommendations based on additional user inputs such as budget, features, brand preferences, or specific use cases.\n\n"
)

_RECOMMENDATION_RULES = (
    "When the user requests a comparison, provide a detailed comparison in a table. Include rows for:\n"
    "- Product name\n- Price\n- Key features\n- Suitability for specific use cases\n- Brand\n- Warranty or additional benefits\n\n"
    "If no additional details are provided initially:\n"
    "- Suggest popular or highly rated products across different price ranges and brands in the specified category.\n"
    "- Ask polite and specific questions to refine the recommendations, such as budget range, preferred screen size or resolution, "
    "desired smart features or operating systems, and primary use case (e.g., gaming, streaming, professional work).\n\n"
    "Ensure the recommendations are drawn directly from the dataset and avoid repetition.\n\n"
    "If required information is unavailable:\n"
    "- Inform the user politely and suggest ways to refine their query.\n"
    "- Provide actionable advice for narrowing down preferences.\n\n"
    "Do not speculate or provide recommendations outside the retrieved dataset. "
    "Maintain a user-focused approach and ensure responses are clear, relevant, and concise.\n"
)

# Synthesis (system) prompt, HTML flavour:
SYSTEM_PROMPT_HTML = (
    _ASSISTANT_BRIEF
    + "Structure your response in HTML using the following format:\n"
    "<h1>, <h2>: For section headings.\n"
    "<p>: For introductory text or additional explanations.\n"
    "<ul>, <li>: For unordered lists of product recommendations or feature highlights.\n"
    "<ol>, <li>: For ordered lists when prioritizing items or steps.\n"
    "<strong>: To highlight product names and key features.\n"
    "<b>: For emphasis within the text.\n"
    "<br>: For spacing between sections or paragraphs.\n"
    "<table>, <tr>, <th>, <td>: For comparisons, with white borders.\n\n"
    "Note: Do NOT use any other format except HTML to structure your response. Strictly use HTML tags for formatting. "
    "Do NOT wrap the response in code fences.\n\n"
    "For each recommendation, include:\n"
    "- The product name (<strong>)\n"
    "- A concise description of its detailed features from the dataset\n"
    "- Why it is suitable for the user's specified or inferred needs\n"
    "- Its price\n\n"
    + _RECOMMENDATION_RULES
    + "{context}"
)

# Synthesis (system) prompt, Markdown flavour:
SYSTEM_PROMPT_MARKDOWN = (
    _ASSISTANT_BRIEF
    + "Structure your response in Markdown using the following format:\n"
    "#, ##: For section headings.\n"
    "Plain paragraphs: For introductory text or additional explanations.\n"
    "- items: For unordered lists of product recommendations or feature highlights.\n"
    "1. items: For ordered lists when prioritizing items or steps.\n"
    "**bold**: To highlight product names and key features.\n"
    "| tables |: For comparisons.\n\n"
    "Note: Do NOT use HTML tags. Strictly use Markdown for formatting.\n\n"
    "For each recommendation, include:\n"
    "- The product name (**bold**)\n"
    "- A concise description of its detailed features from the dataset\n"
    "- Why it is suitable for the user's specified or inferred needs\n"
    "- Its price\n\n"
    + _RECOMMENDATION_RULES
    + "{context}"
)


def _escape_braces(text: str, keep: tuple = ()) -> str:
    """Escape `{}` of free text for use as a template, keeping the given variables."""
    escaped = text.replace("{", "{{").replace("}", "}}")
    for variable in keep:
        escaped = escaped.replace("{{" + variable + "}}", "{" + variable + "}")
    return escaped


@dataclass(frozen=True)
class PromptSet:
    """The pair of instructions one chatbot runs with, and the output mode they ask for.

    `system_prompt` must contain the `{context}` variable, which is filled with
    the retrieved documents. `retriever_prompt` has no variables of its own.
    """
    retriever_prompt: str
    system_prompt: str
    mode: ResponseMode = ResponseMode.HTML

    @classmethod
    def for_mode(cls, mode: ResponseMode) -> "PromptSet":
        """Default electronics recommendation prompts for the given mode."""
        system_prompt = SYSTEM_PROMPT_HTML if mode is ResponseMode.HTML else SYSTEM_PROMPT_MARKDOWN
        return cls(retriever_prompt=RETRIEVER_PROMPT, system_prompt=system_prompt, mode=mode)

    @classmethod
    def from_settings(cls, retriever_prompt: str, system_prompt: str, mode: ResponseMode) -> "PromptSet":
        """Prompts written by an admin (free text).
        Braces are escaped and `{context}` is appended if the admin left it out.
        """
        if "{context}" not in system_prompt:
            system_prompt = system_prompt.rstrip() + "\n{context}"

        return cls(
            retriever_prompt=_escape_braces(retriever_prompt),
            system_prompt=_escape_braces(system_prompt, keep=("context",)),
            mode=mode,
        )

    def condense_template(self) -> ChatPromptTemplate:
        """System instruction > chat history > latest input."""
        return ChatPromptTemplate.from_messages(
            messages=[
                ("system", self.retriever_prompt),
                MessagesPlaceholder(variable_name="chat_history"),
                ("human", "{input}"),
            ]
        )

    def synthesis_template(self) -> ChatPromptTemplate:
        """System instruction with {context} > chat history > latest input."""
        return ChatPromptTemplate.from_messages(
            messages=[
                ("system", self.system_prompt),
                MessagesPlaceholder(variable_name="chat_history"),
                ("human", "{input}"),
            ]
        )

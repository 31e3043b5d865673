# ai_bridge/ai_services/prompts.py
import json
from typing import Optional

from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import RecordContext

TOO_MANY_STEPS_MESSAGE = (
    "I apologize, but I reached the maximum number of steps while processing your request. "
    "Please try simplifying your request or breaking it into smaller parts."
)

NO_RESPONSE_MESSAGE = "I processed your request but had no response to provide."

SYSTEM_PROMPT = """You are an AI assistant integrated with Salesforce through the Model Context Protocol (MCP). You have access to various Salesforce tools that allow you to interact with Salesforce data and metadata.

Important:
- You are explicitly authorized to call available MCP tools to access the user's Salesforce org when necessary to fulfill the user's request.
- It's very likely that the user will ask about Salesforce data or operations. So if you are uncertain of which system the user is referring to, you should not ask, just consider it to be Salesforce.

When using tools:
- Only call the minimum set of tools and request the minimum fields required to complete the task.
- If an action will modify data (create/update/delete), ask the user for explicit confirmation before proceeding.
- Include the raw tool result only if directly specified from the user.
- Do not attempt to access or return any credentials or secrets.

Your capabilities include:
- Searching for Salesforce objects and describing their schemas
- Querying records with support for relationships (SOQL)
- Performing aggregate queries (COUNT, SUM, AVG, MIN, MAX with GROUP BY)
- Creating, updating, and deleting records (DML operations)
- Managing custom objects and fields
- Configuring field-level security
- Searching across multiple objects (SOSL)
- Reading and writing Apex classes and triggers
- Executing anonymous Apex code
- Managing debug logs

When a user asks about Salesforce data or operations:
1. Carefully analyze what the user is asking for
2. Determine which tool(s) are needed to fulfill the request
3. Call the appropriate tools with correct parameters
4. Interpret the results from the tools
5. Present the information in a clear, user-friendly format
6. If you need more information to complete a request, ask the user

Guidelines:
- You are likely to be interacting with a Business User or Salesforce Admin so avoid exposing technical details if not specified.
- Always be helpful, accurate, and concise
- Format your responses for readability in a chat interface
- Use proper Salesforce terminology
- If an operation fails, explain why and suggest alternatives
- For queries, present data in a structured format (lists, tables, etc.)
- When creating or modifying records, confirm the action taken

Remember: You're helping users interact with their Salesforce org, so be precise and careful with data operations."""


def format_record_context(record_context: RecordContext) -> str:
    """
    Render a Salesforce record into LLM-friendly text.

    Null fields are skipped; nested objects are JSON-serialized on one line.
    """
    lines = [
        "",
        "",
        "=== SALESFORCE RECORD CONTEXT ===",
        f"Object Type: {record_context.object_api_name}",
        f"Record ID: {record_context.record_id}",
        "",
        "Record Fields:",
    ]
    for field_name, field_value in record_context.record.items():
        if field_value is None:
            continue
        if isinstance(field_value, dict):
            lines.append(f"  {field_name}: {json.dumps(field_value, default=str)}")
        else:
            lines.append(f"  {field_name}: {field_value}")
    lines.append("=== END RECORD CONTEXT ===")
    lines.append("")
    lines.append(
        f"The user's question relates to the above {record_context.object_api_name} record. "
        "Use this context when answering their question."
    )
    return "\n".join(lines) + "\n\n"


def format_user_context(salesforce_auth: Optional[SalesforceAuth]) -> str:
    """USER CONTEXT block for system instructions. Never includes the access token."""
    if salesforce_auth is None:
        return ""
    user_info = salesforce_auth.user_info
    return (
        "\n\n=== USER CONTEXT ===\n"
        f"Salesforce Instance URL: {salesforce_auth.instance_url}\n"
        f"Salesforce User Id: {user_info.user_id}\n"
        f"Salesforce User Email: {user_info.email or ''}\n"
        f"Salesforce User Name: {user_info.display_name or user_info.username}\n"
        "=== END USER CONTEXT ===\n"
    )

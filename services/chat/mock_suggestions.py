"""
Static suggestion dataset used by the mock suggestion source.
"""

from typing import List

from services.chat.models import Suggestion

MOCK_SUGGESTIONS: List[Suggestion] = [
    Suggestion(id="1", text="tell me about", type="completion", confidence=0.9),
    Suggestion(id="2", text="tell me how to", type="completion", confidence=0.88),
    Suggestion(id="3", text="tell me more about", type="completion", confidence=0.85),
    Suggestion(
        id="3a",
        text="tell me more about the benefits of",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="3b", text="tell me more about how to", type="completion", confidence=0.8
    ),
    Suggestion(
        id="3c",
        text="tell me more about the differences between",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="3d",
        text="tell me more about the advantages of",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="3e",
        text="tell me more about the process of",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="3f",
        text="tell me more about the history of",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="3g",
        text="tell me more about the features of",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="4",
        text="tell me the difference between",
        type="completion",
        confidence=0.82,
    ),
    Suggestion(id="5", text="tell me why", type="completion", confidence=0.7),
    Suggestion(
        id="6", text="what are the benefits of", type="question", confidence=0.9
    ),
    Suggestion(
        id="6a", text="what are the benefits of using", type="question", confidence=0.85
    ),
    Suggestion(
        id="6b",
        text="what are the benefits of implementing",
        type="question",
        confidence=0.85,
    ),
    Suggestion(
        id="6c",
        text="what are the benefits of adopting",
        type="question",
        confidence=0.85,
    ),
    Suggestion(
        id="7", text="what is the best way to", type="question", confidence=0.88
    ),
    Suggestion(
        id="8", text="what should I know about", type="question", confidence=0.85
    ),
    Suggestion(
        id="9", text="what are the advantages of", type="question", confidence=0.82
    ),
    Suggestion(
        id="10", text="what is the difference between", type="question", confidence=0.8
    ),
    Suggestion(id="11", text="how does", type="question", confidence=0.9),
    Suggestion(id="12", text="how to", type="question", confidence=0.88),
    Suggestion(id="13", text="how can I", type="question", confidence=0.85),
    Suggestion(id="14", text="how do I", type="question", confidence=0.82),
    Suggestion(id="15", text="how would you", type="question", confidence=0.8),
    Suggestion(id="16", text="explain how to", type="command", confidence=0.9),
    Suggestion(id="17", text="explain the concept of", type="command", confidence=0.88),
    Suggestion(id="18", text="explain why", type="command", confidence=0.85),
    Suggestion(
        id="19", text="explain the difference between", type="command", confidence=0.82
    ),
    Suggestion(id="20", text="help me with", type="completion", confidence=0.9),
    Suggestion(id="21", text="help me understand", type="completion", confidence=0.88),
    Suggestion(id="22", text="help me create", type="completion", confidence=0.85),
    Suggestion(id="23", text="help me write", type="completion", confidence=0.82),
    Suggestion(id="24", text="create a", type="command", confidence=0.9),
    Suggestion(id="25", text="create an example of", type="command", confidence=0.88),
    Suggestion(id="26", text="create a function that", type="command", confidence=0.85),
    Suggestion(id="27", text="create a script to", type="command", confidence=0.82),
    Suggestion(id="28", text="write a", type="command", confidence=0.9),
    Suggestion(id="29", text="write code to", type="command", confidence=0.88),
    Suggestion(id="30", text="write a function that", type="command", confidence=0.85),
    Suggestion(id="31", text="write a script for", type="command", confidence=0.82),
    Suggestion(id="32", text="show me how to", type="suggestion", confidence=0.9),
    Suggestion(
        id="33", text="show me an example of", type="suggestion", confidence=0.88
    ),
    Suggestion(
        id="34", text="show me the steps to", type="suggestion", confidence=0.85
    ),
    Suggestion(id="35", text="compare", type="suggestion", confidence=0.9),
    Suggestion(
        id="36", text="compare the pros and cons of", type="suggestion", confidence=0.88
    ),
    Suggestion(
        id="37", text="compare these options", type="suggestion", confidence=0.85
    ),
    Suggestion(id="38", text="generate a", type="command", confidence=0.9),
    Suggestion(id="39", text="generate code for", type="command", confidence=0.88),
    Suggestion(id="40", text="generate a list of", type="command", confidence=0.85),
    Suggestion(id="41", text="debug this", type="suggestion", confidence=0.9),
    Suggestion(id="42", text="debug my code", type="suggestion", confidence=0.88),
    Suggestion(
        id="43", text="debug the issue with", type="suggestion", confidence=0.85
    ),
    Suggestion(id="44", text="optimize this", type="suggestion", confidence=0.9),
    Suggestion(
        id="45", text="optimize performance", type="suggestion", confidence=0.88
    ),
    Suggestion(id="46", text="optimize the code", type="suggestion", confidence=0.85),
    Suggestion(id="47", text="implement", type="command", confidence=0.9),
    Suggestion(
        id="48", text="implement a solution for", type="command", confidence=0.88
    ),
    Suggestion(
        id="49", text="implement error handling", type="command", confidence=0.85
    ),
    Suggestion(id="50", text="test this", type="suggestion", confidence=0.9),
    Suggestion(
        id="51", text="test the functionality", type="suggestion", confidence=0.88
    ),
    Suggestion(id="52", text="test my code", type="suggestion", confidence=0.85),
]

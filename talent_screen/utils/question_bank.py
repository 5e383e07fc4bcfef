"""Built-in assessment content."""
from typing import Dict, List

DEFAULT_TYPING_TEXT = (
    "Customer service is about helping people and solving problems with empathy and "
    "professionalism. When assisting customers, it's important to listen carefully, "
    "acknowledge their concerns, and provide clear solutions. Every interaction should "
    "aim to exceed expectations and leave a positive impression."
)

READING_SCENARIOS: List[Dict] = [
    {
        "id": 1,
        "scenario": (
            "A customer calls in, clearly frustrated because they've been charged twice for "
            "their monthly subscription. They explain that they've already contacted their bank "
            "but were told to resolve it with your company directly. This is their third time "
            "calling about this issue."
        ),
        "questions": [
            {
                "id": "q1-1",
                "question": "What would be the most appropriate initial response?",
                "options": [
                    "Tell them they need to be patient as these things take time to resolve.",
                    "Apologize for the inconvenience and acknowledge their frustration.",
                    "Explain that double charges happen sometimes and it's normal.",
                    "Suggest they should have checked their account more carefully.",
                ],
                "correct_answer": 1,
            },
            {
                "id": "q1-2",
                "question": "What information would you need to gather first?",
                "options": [
                    "Their opinion about your company's billing system.",
                    "How many times exactly they've called before.",
                    "Their account details and the dates of the duplicate charges.",
                    "Whether they've considered canceling their subscription.",
                ],
                "correct_answer": 2,
            },
        ],
    },
    {
        "id": 2,
        "scenario": (
            "A customer emails your technical support team about an error they're experiencing "
            "with your software. They've attached several screenshots showing the error messages. "
            "The customer mentions they have an important presentation tomorrow and need this "
            "fixed urgently. You recognize that this is a known issue that requires several "
            "steps to resolve."
        ),
        "questions": [
            {
                "id": "q2-1",
                "question": "What should be your first priority in this situation?",
                "options": [
                    "Explain that there's a queue and they'll have to wait their turn.",
                    "Acknowledge the urgency and provide immediate next steps.",
                    "Tell them to reschedule their presentation.",
                    "Suggest they should have tested the software earlier.",
                ],
                "correct_answer": 1,
            },
            {
                "id": "q2-2",
                "question": "What tone would be most appropriate for your response?",
                "options": [
                    "Casual and friendly",
                    "Technical and detailed",
                    "Efficient but empathetic",
                    "Brief and direct",
                ],
                "correct_answer": 2,
            },
        ],
    },
]

GRAMMAR_QUESTIONS: List[Dict] = [
    {
        "id": "g1",
        "question": "Select the sentence with correct grammar:",
        "options": [
            "We was unable to locate you're account in our system.",
            "We were unable to locate your account in our system.",
            "We was unable to locate your account in our system.",
            "We were unable to locate you're account in our system.",
        ],
        "correct_answer": 1,
    },
    {
        "id": "g2",
        "question": "Fill in the blank: 'Please hold while I ________ your information.'",
        "options": ["access", "excess", "acess", "axcess"],
        "correct_answer": 0,
    },
    {
        "id": "g3",
        "question": "Which sentence uses punctuation correctly?",
        "options": [
            "Thank you for your patience I'll resolve this issue soon.",
            "Thank you for your patience, I'll resolve this issue soon.",
            "Thank you for your patience; I'll resolve this issue, soon.",
            "Thank you for your patience: I'll resolve this issue soon.",
        ],
        "correct_answer": 1,
    },
    {
        "id": "g4",
        "question": "Choose the correct word for the sentence: 'We value your ________ and are working to improve our service.'",
        "options": ["feedback", "feedbach", "feedbak", "feedbeck"],
        "correct_answer": 0,
    },
    {
        "id": "g5",
        "question": "Identify the sentence with correct subject-verb agreement:",
        "options": [
            "The customer have submitted multiple requests.",
            "The customer has submitted multiple requests.",
            "The customer having submitted multiple requests.",
            "The customer be submitting multiple requests.",
        ],
        "correct_answer": 1,
    },
]

GRAMMAR_WRITING_PROMPT = (
    "A customer has written to complain that a product they ordered arrived damaged. "
    "Write a brief response (approx. 50 words) acknowledging their concern and explaining "
    "the next steps they should take."
)

VOICE_PROMPTS: List[Dict] = [
    {
        "id": "voice1",
        "type": "reading_aloud",
        "text": (
            "Welcome to customer service. My name is Sarah, and I'll be assisting you today. "
            "Could you please provide your account number so I can better help with your inquiry? "
            "I want to ensure we address all your concerns efficiently and thoroughly."
        ),
        "max_time": 30,
    },
    {
        "id": "voice2",
        "type": "scenario_response",
        "text": (
            "A customer calls very upset because they've been on hold for 45 minutes trying to "
            "resolve a billing error. How would you respond to de-escalate the situation and "
            "address their concerns?"
        ),
        "max_time": 90,
    },
    {
        "id": "voice3",
        "type": "open_conversation",
        "text": (
            "Explain how you would handle a situation where you need to deny a customer's request "
            "for a refund based on company policy, while still maintaining a positive customer "
            "relationship."
        ),
        "max_time": 120,
    },
]

WRITING_TASKS: List[Dict] = [
    {
        "id": "email_response",
        "prompt": (
            "Reply to a customer email asking why their order has not arrived after two weeks. "
            "Apologize, explain how you will investigate and give a clear timeline."
        ),
    },
    {
        "id": "complaint_resolution",
        "prompt": (
            "A customer complains that they were charged for a service they cancelled. "
            "Write a response that resolves the complaint and retains the customer."
        ),
    },
    {
        "id": "process_documentation",
        "prompt": (
            "Document, step by step, how a new agent should process a refund request "
            "from receipt to confirmation."
        ),
    },
]

# Correct option index per scenario, in scenario order
SJT_CORRECT_OPTIONS: List[int] = [2, 2, 1, 3, 0, 2]

STAGE2_PASS_RECOMMENDATIONS = [
    "Ready for customer service roles",
    "Strong communication skills",
    "Good decision-making abilities",
]

STAGE2_FAIL_RECOMMENDATIONS = [
    "Additional practice with professional communication",
    "Focus on accent neutrality",
    "Review company policies and procedures",
]

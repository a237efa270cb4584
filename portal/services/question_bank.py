"""Static question pools, one per module test."""

from __future__ import annotations

from portal.models.assessment import Question


def _q(
    qid: int,
    prompt: str,
    options: tuple[str, str, str, str],
    correct: str,
    domain: str,
    explanation: str,
) -> Question:
    return Question(
        id=str(qid),
        prompt=prompt,
        option_set=dict(zip(("a", "b", "c", "d"), options, strict=True)),
        correct_choice=correct,
        points=10,
        domain_tag=domain,
        explanation=explanation,
    )


PYTHON_ESSENTIALS_1_MODULE_1: tuple[Question, ...] = (
    _q(
        1,
        "Which of the following best describes what a computer program is?",
        (
            "A set of mathematical formulas",
            "A sequence of instructions that tells the computer what to do",
            "A type of hardware component",
            "An operating system feature",
        ),
        "b",
        "Programming Concepts",
        "A computer program is a sequence of instructions that tells the "
        "computer what to do, written in a programming language.",
    ),
    _q(
        2,
        "What does an interpreter do?",
        (
            "Translates the entire program to machine code before execution",
            "Executes program instructions line by line",
            "Only checks for syntax errors",
            "Creates executable files",
        ),
        "b",
        "Programming Concepts",
        "An interpreter executes program instructions line by line, "
        "translating and running each instruction immediately.",
    ),
    _q(
        3,
        "Which of the following is TRUE about Python?",
        (
            "Python is a low-level programming language",
            "Python requires a compiler to create executable files",
            "Python uses an interpreter to execute code",
            "Python was primarily designed for system programming",
        ),
        "c",
        "Python Basics",
        "Python is an interpreted, high-level programming language that uses "
        "an interpreter to execute code.",
    ),
    _q(
        4,
        'What is the primary purpose of the "print()" function in Python?',
        (
            "To read input from the user",
            "To perform mathematical calculations",
            "To display output on the screen",
            "To create variables",
        ),
        "c",
        "Python Syntax",
        "The print() function outputs text or values to the console/screen.",
    ),
    _q(
        5,
        "Which of the following Python code snippets contains a syntax error?",
        (
            'print("Hello, World!")',
            'print("Hello, World!"',
            "print('Hello, World!')",
            'print("Hello", "World!")',
        ),
        "b",
        "Python Syntax",
        "Option B is missing a closing parenthesis, which creates a syntax error.",
    ),
    _q(
        6,
        "What does IDLE stand for in Python?",
        (
            "Interactive Development and Learning Environment",
            "Integrated Design and Learning Editor",
            "Integrated Development and Learning Environment",
            "Interactive Design and Learning Editor",
        ),
        "c",
        "Python Tools",
        "IDLE stands for Integrated Development and Learning Environment, "
        "which comes with Python installation.",
    ),
    _q(
        7,
        "Which operating system often has Python pre-installed?",
        ("Windows", "Linux", "macOS", "None of the above"),
        "b",
        "Python Installation",
        "Linux distributions often have Python pre-installed because it is "
        "used by many system components.",
    ),
    _q(
        8,
        "What is the correct file extension for Python source files?",
        (".py", ".python", ".pt", ".src"),
        "a",
        "Python Files",
        "Python source files use the .py extension.",
    ),
    _q(
        9,
        'What will be the output of the following code?\n'
        'print("Hello")\nprint("World")',
        (
            "Hello World",
            "Hello\\nWorld (as literal text)",
            "HelloWorld",
            "Hello World (on separate lines)",
        ),
        "d",
        "Python Output",
        "Each print() statement outputs text on a new line by default.",
    ),
    _q(
        10,
        "What is the main difference between a compiler and an interpreter?",
        (
            "Compilers are faster but interpreters are more accurate",
            "Compilers translate entire programs before execution, "
            "interpreters translate line by line",
            "Interpreters only work with Python, compilers work with all languages",
            "There is no significant difference",
        ),
        "b",
        "Programming Concepts",
        "Compilers translate the entire source code to machine code before "
        "execution, while interpreters translate and execute line by line.",
    ),
    _q(
        11,
        "Which of these is NOT a valid Python program?",
        (
            'print("Python is fun!")',
            'Print("Python is fun!")',
            "print('Python is fun!')",
            'print("Python" + " is fun!")',
        ),
        "b",
        "Python Syntax",
        'Python is case-sensitive. "Print" with capital P is not the same as "print".',
    ),
    _q(
        12,
        "What is an algorithm?",
        (
            "A programming language",
            "A step-by-step procedure to solve a problem",
            "A type of computer hardware",
            "A mathematical equation",
        ),
        "b",
        "Programming Concepts",
        "An algorithm is a finite sequence of well-defined instructions to "
        "solve a specific problem.",
    ),
    _q(
        13,
        "Which of the following statements about Python is FALSE?",
        (
            "Python is an interpreted language",
            "Python is platform-independent",
            "Python code must be compiled before running",
            "Python has a simple and readable syntax",
        ),
        "c",
        "Python Basics",
        "Python does not require compilation before running; it uses an interpreter.",
    ),
    _q(
        14,
        "What should you do if you encounter a syntax error in Python?",
        (
            "Ignore it and continue running the program",
            "Check the code for typos, missing punctuation, or incorrect syntax",
            "Restart the computer",
            "Reinstall Python",
        ),
        "b",
        "Debugging",
        "Syntax errors occur due to incorrect code structure. Check for "
        "typos, missing characters, or incorrect syntax.",
    ),
    _q(
        15,
        "Which of these is the correct way to write a comment in Python?",
        (
            "// This is a comment",
            "/* This is a comment */",
            "# This is a comment",
            "<!-- This is a comment -->",
        ),
        "c",
        "Python Syntax",
        "In Python, comments start with the # symbol.",
    ),
    _q(
        16,
        "What is the purpose of an Integrated Development Environment (IDE)?",
        (
            "To play video games",
            "To provide tools for writing, testing, and debugging code",
            "To manage computer hardware",
            "To browse the internet",
        ),
        "b",
        "Programming Tools",
        "An IDE provides comprehensive tools for software development "
        "including code editing, debugging, and testing.",
    ),
    _q(
        17,
        "Which statement about programming languages is TRUE?",
        (
            "All programming languages are the same",
            "Python is the only programming language that exists",
            "Different programming languages have different strengths and purposes",
            "Programming languages are only for mathematics",
        ),
        "c",
        "Programming Concepts",
        "Different programming languages are designed for different purposes "
        "(web development, data science, system programming, etc.).",
    ),
    _q(
        18,
        'What does the term "syntax" refer to in programming?',
        (
            "The meaning of code",
            "The rules for writing valid code",
            "The speed of program execution",
            "The size of the program",
        ),
        "b",
        "Programming Concepts",
        "Syntax refers to the set of rules that define the structure of a "
        "programming language.",
    ),
    _q(
        19,
        "Why is Python considered a good language for beginners?",
        (
            "It has simple, readable syntax",
            "It has extensive libraries",
            "It has a large community",
            "All of the above",
        ),
        "d",
        "Python Basics",
        "Python is beginner-friendly due to its simple syntax, extensive "
        "libraries, and large supportive community.",
    ),
    _q(
        20,
        "What is the first step in solving a problem with programming?",
        (
            "Start writing code immediately",
            "Understand the problem and plan a solution",
            "Choose a programming language",
            "Install development tools",
        ),
        "b",
        "Problem Solving",
        "The first step in programming is to thoroughly understand the problem "
        "and plan an algorithmic solution before writing code.",
    ),
)

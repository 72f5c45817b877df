"""
Built-in rule set for cdb.

This module is data only: no side effects, no compilation. Rules are listed
in registration order, which is also the scan order inside a pass.

Naming conventions:
- EXIT_*      : exit-point signatures (Tier 1 source and fallback anchors)
- TIER2_*     : specific patterns
- TIER3_*     : generic indicators
- CONTEXT_*   : windowing rules
- SUGGESTIONS : fix hints keyed by rule name
"""

from cdb.patterns.rules import ContextMode, ContextRule, ExitSignature, PatternRule, SuggestionRule
from cdb.schemas import ErrorCategory

RULESET_VERSION = "1.0"

_C = ErrorCategory.CRITICAL
_B = ErrorCategory.BUILD_FAILURE
_T = ErrorCategory.TEST_FAILURE
_I = ErrorCategory.INFRASTRUCTURE
_G = ErrorCategory.GENERIC

#
# Exit signatures, in priority order for a single line.
#

EXIT_SIGNATURES: tuple[ExitSignature, ...] = (
    # "Exited with code exit status 1", "Command exited with status 2", "exited with code 1"
    ExitSignature(
        "Non-zero Exit",
        r"exited with (?:code|status)\s+(?:exit status\s+)?(?P<code>[1-9]\d*)",
    ),
    ExitSignature("Process Completed", r"process completed with exit code (?P<code>[1-9]\d*)"),
    ExitSignature("Yarn Command Failed", r"error Command failed with exit code (?P<code>[1-9]\d*)"),
    ExitSignature(
        "Lifecycle Script Failure",
        r"npm ERR! (?:code ELIFECYCLE|Failed at the .+ script|Lifecycle script .+ failed)",
    ),
    ExitSignature("Job Failed", r"ERROR: Job failed: exit code (?P<code>[1-9]\d*)"),
    ExitSignature("Make Error", r"make(?:\[\d+\])?: \*\*\* .*Error (?P<code>[1-9]\d*)"),
    ExitSignature("Build Failed", "build failed", regex=False),
    ExitSignature("No Output Timeout", "too long with no output", category=_I, regex=False),
    # Weak signatures: anchors for the fallback view only
    ExitSignature("Exit Status", r"\bexit (?:code|status)[:=]?\s*(?P<code>[1-9]\d*)", strong=False),
    ExitSignature(
        "Non-zero Return",
        r"returned (?:a )?non-zero (?:exit status|code):?\s*(?P<code>[1-9]\d*)",
        strong=False,
    ),
    ExitSignature("Killed", r"^\s*Killed\s*$", category=_C, case_sensitive=True, strong=False),
)

# Exit codes that say more about the failure than the signature does
EXIT_CODE_CATEGORIES: dict[int, ErrorCategory] = {
    137: _C,  # SIGKILL, usually the OOM killer
    139: _C,  # SIGSEGV
}

#
# Tier 2: specific patterns.
#

TIER2_RULES: tuple[PatternRule, ...] = (
    # Crashes
    PatternRule("Segfault", _C, 2, "segmentation fault", regex=False),
    PatternRule("Core Dumped", _C, 2, "core dumped", regex=False),
    PatternRule("Out of Memory", _C, 2, r"\b(?:oom|out of memory|memory limit)\b"),
    PatternRule("Panic", _C, 2, r"^panic: |thread '.+' panicked at", case_sensitive=True),
    # Module and dependency resolution
    PatternRule("Module Resolution", _B, 2, r"\[commonjs--resolver\].*failed to resolve"),
    PatternRule("Missing Module", _B, 2, "cannot find module", regex=False),
    PatternRule("Python Module Not Found", _B, 2, "No module named", regex=False, case_sensitive=True),
    PatternRule("File Not Found", _B, 2, r"ENOENT:.*no such file or directory"),
    PatternRule("Missing Dependency", _B, 2, r"dependency.*not found"),
    # Language errors
    PatternRule("Syntax Error", _B, 2, "SyntaxError:", regex=False),
    PatternRule("Type Error", _B, 2, "TypeError:", regex=False),
    PatternRule("Reference Error", _B, 2, "ReferenceError:", regex=False),
    # Build and compilation
    PatternRule("Compilation Error", _B, 2, "compilation failed", regex=False),
    PatternRule("TypeScript Error", _B, 2, r"error TS\d+:"),
    PatternRule("Rust Compile Error", _B, 2, r"^error\[E\d{4}\]", case_sensitive=True),
    PatternRule("Linker Error", _B, 2, "undefined reference to", regex=False),
    PatternRule("Lint Error", _B, 2, r"eslint.*error"),
    PatternRule("Docker Build Error", _B, 2, "failed to solve:", regex=False),
    # Package managers
    PatternRule("NPM Error", _B, 2, "npm ERR!", regex=False),
    PatternRule("Yarn Error", _B, 2, "yarn error", regex=False),
    PatternRule("Command Failure", _B, 2, "command failed", regex=False),
    # Tests
    PatternRule("Assertion Error", _T, 2, "AssertionError", regex=False, case_sensitive=True),
    PatternRule("Assertion Failure", _T, 2, r"assertion.*failed"),
    PatternRule("Test Suite Failure", _T, 2, r"\d+ (?:test|tests|spec|specs) failed"),
    PatternRule("Jest Failure", _T, 2, r"^\s*FAIL\s+\S", case_sensitive=True),
    PatternRule("Pytest Failure", _T, 2, r"^FAILED\s+\S+::", case_sensitive=True),
    PatternRule("Rust Test Failure", _T, 2, "test result: FAILED", regex=False, case_sensitive=True),
    PatternRule("Test Failure", _T, 2, r"test.*failed"),
    # Infrastructure
    PatternRule("Network Error", _I, 2, r"\b(?:ECONNREFUSED|ECONNRESET|ETIMEDOUT|EAI_AGAIN)\b", case_sensitive=True),
    PatternRule("DNS Failure", _I, 2, r"could not resolve host|getaddrinfo ENOTFOUND"),
    PatternRule("Docker Daemon", _I, 2, "cannot connect to the docker daemon", regex=False),
    PatternRule("Rate Limit", _I, 2, r"rate limit exceeded|HTTP 429|too many requests"),
    PatternRule("Disk Full", _I, 2, "no space left on device", regex=False),
    PatternRule("Git Fetch Failure", _I, 2, r"RPC failed|early EOF|remote end hung up"),
    PatternRule("Permission Denied", _I, 2, "permission denied", regex=False),
)

#
# Tier 3: generic indicators. Only scanned when Tiers 1 and 2 found nothing.
#

TIER3_RULES: tuple[PatternRule, ...] = (
    PatternRule("Error Line", _G, 3, r"^\s*(?:\[error\]|error\b|fatal\b|err!)"),
    PatternRule("Failed", _G, 3, "failed", regex=False),
    PatternRule("Failure Mark", _G, 3, "✗", regex=False, case_sensitive=True),
    PatternRule("FAIL Marker", _G, 3, r"\bFAIL\b", case_sensitive=True),
)

# An indented line starting with a frame marker: JS/Java "at ...",
# Python 'File "..."', Ruby "from path:12", gdb/native "#3 ".
TRACE_FRAME_RULE = PatternRule(
    "Stack Trace",
    _G,
    3,
    r"^\s+(?:at\s+\S|File\s+\"|from\s+\S+:\d+|#\d+\s)",
    case_sensitive=True,
)

# Lines that open or close one test's output block in common runners.
TEST_BLOCK_MARKERS: tuple[str, ...] = (
    r"^\s*●\s",  # jest test title
    r"^\s*(?:FAIL|PASS)\s+\S",  # jest file result
    r"^_{3,}\s.+\s_{3,}$",  # pytest test title
    r"^={3,}.*={3,}$",  # pytest section header
    r"^---- .+ stdout ----$",  # cargo test output
    r"^\s*\d+\)\s",  # mocha failure index
    r"^Test Suites:",  # jest summary
)

#
# Context windows.
#

CONTEXT_RULES: dict[ErrorCategory, ContextRule] = {
    _C: ContextRule(5, 10),
    _B: ContextRule(5, 10),
    _T: ContextRule(5, 10, ContextMode.FULL_BLOCK),
    _I: ContextRule(5, 10),
    _G: ContextRule(5, 10),
}
CONTEXT_EXIT_POINT = ContextRule(20, 0)
CONTEXT_STACK_TRACE = ContextRule(0, 0, ContextMode.UNTIL_DEDENT)

#
# Suggestions. The first applicable entry for a rule wins.
#

SUGGESTIONS: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        "File Not Found",
        "Check file case sensitivity (README.md vs readme.md)",
        contains=("README", "readme"),
    ),
    SuggestionRule(
        "File Not Found",
        "Run 'npm install' to ensure dependencies are installed",
        contains=("package.json",),
    ),
    SuggestionRule("File Not Found", "Verify file exists and path is correct"),
    SuggestionRule("Missing Module", "Run 'npm install' or check package.json dependencies"),
    SuggestionRule("Missing Dependency", "Run 'npm install' or check package.json dependencies"),
    SuggestionRule(
        "Python Module Not Found",
        "Install the missing package or add it to requirements / pyproject dependencies",
    ),
    SuggestionRule("TypeScript Error", "Run 'npm run typecheck' locally to see full type errors"),
    SuggestionRule("Lint Error", "Run 'npm run lint -- --fix' to auto-fix some issues"),
    SuggestionRule("Test Failure", "Run tests locally with '--verbose' for more details"),
    SuggestionRule("Test Suite Failure", "Run tests locally with '--verbose' for more details"),
    SuggestionRule(
        "Out of Memory",
        "Increase Node memory: NODE_OPTIONS='--max-old-space-size=4096'",
    ),
    SuggestionRule("NPM Error", "Clear cache (npm cache clean --force) and reinstall"),
    SuggestionRule("Yarn Error", "Clear cache (npm cache clean --force) and reinstall"),
    SuggestionRule("Disk Full", "Free disk space on the executor or use a larger resource class"),
    SuggestionRule(
        "No Output Timeout",
        "The step printed nothing for too long: raise no_output_timeout or emit progress output",
    ),
    SuggestionRule(
        "Non-zero Exit",
        "Exit 137 means the process was killed, usually for exceeding memory: use a larger resource class",
        exit_code=137,
    ),
    SuggestionRule(
        "Non-zero Exit",
        "Exit 139 is a segmentation fault: check native dependencies and their versions",
        exit_code=139,
    ),
    SuggestionRule(
        "Non-zero Exit",
        "Exit 127 means command not found: check the tool is installed and on PATH",
        exit_code=127,
    ),
)

import warnings

# Interpreter end-of-life notices from the google client libraries are
# printed on import and would interleave with plan and apply output.
warnings.filterwarnings("ignore", category=FutureWarning, module=r"google\.(api_core|cloud)")

"""External build stages (lint and minify)."""

from scriptbundle.stages.eslint import EslintRunner
from scriptbundle.stages.terser import MinifiedOutput, TerserMinifier

__all__ = ["EslintRunner", "MinifiedOutput", "TerserMinifier"]

LOG_TEMPLATE = (
    "Compile request received with options: "
    "strict={strict}, include_report={include_report}. "
    "Host namespace: {host_namespace}, max tree depth: {max_depth}, source length: {source_length}"
)

REPORT_FOOTER = (
    "---\n"
    "*Gamma is charged per statement before it runs. Operands are free; each statement pays for its "
    "outermost operator, and declared literals pay 2,500 gamma per stored byte.*"
)

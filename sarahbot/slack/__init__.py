"""Settings for the Slack adapter."""
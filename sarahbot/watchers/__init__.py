"""Configuration watchers that follow changes on the filesystem."""